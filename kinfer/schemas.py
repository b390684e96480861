from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from .models import Gender, RelationshipType


# =========================
# PERSON SCHEMAS
# =========================
class PersonBrief(BaseModel):
    id: int
    given_name: str
    family_name: Optional[str] = None
    gender: Gender = Gender.unknown

    class Config:
        from_attributes = True


# =========================
# RELATIONSHIP SCHEMAS
# =========================
class RelationshipCreate(BaseModel):
    person1_id: int
    person2_id: int
    relationship_type: RelationshipType
    notes: Optional[str] = None

class RelationshipRead(BaseModel):
    id: int
    person1_id: int
    person2_id: int
    relationship_type: str
    is_active: bool
    confidence: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =========================
# SUGGESTION SCHEMAS
# =========================
class SuggestionRead(BaseModel):
    id: int
    person1_id: int
    person2_id: int
    relationship_type: str
    inverse_type: Optional[str] = None
    tier: int
    pattern: Optional[str] = None
    reason: str
    status: str
    trigger_relationship_id: Optional[int] = None
    created_relationship_id: Optional[int] = None
    created_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    person1: Optional[PersonBrief] = None
    person2: Optional[PersonBrief] = None

    class Config:
        from_attributes = True

class BulkSuggestionIds(BaseModel):
    suggestion_ids: List[int] = Field(..., min_length=1)


# =========================
# CONNECTION REQUEST SCHEMAS
# =========================
class ConnectionRequestCreate(BaseModel):
    recipient_user_id: int
    requester_person_id: int
    relationship_type: RelationshipType
    message: Optional[str] = None

class ConnectionAccept(BaseModel):
    recipient_person_id: int
    relationship_type: Optional[RelationshipType] = None

class ConnectionRequestRead(BaseModel):
    id: int
    requester_user_id: int
    recipient_user_id: int
    requester_person_id: int
    recipient_person_id: Optional[int] = None
    relationship_type: str
    message: Optional[str] = None
    status: str
    created_relationship_id: Optional[int] = None
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
