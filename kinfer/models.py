from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Text, DateTime, func,
    Index, CheckConstraint,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
import sqlalchemy as sa
from .database import Base
import enum


class Gender(str, enum.Enum):
    male = "male"
    female = "female"
    other = "other"
    unknown = "unknown"


class RelationshipType(str, enum.Enum):
    # direct family
    parent = "parent"
    child = "child"
    spouse = "spouse"
    sibling = "sibling"
    # extended family
    grandparent = "grandparent"
    grandchild = "grandchild"
    uncle = "uncle"
    aunt = "aunt"
    nephew = "nephew"
    niece = "niece"
    cousin = "cousin"
    great_grandparent = "great_grandparent"
    great_grandchild = "great_grandchild"
    great_uncle = "great_uncle"
    great_aunt = "great_aunt"
    # in-laws
    father_in_law = "father_in_law"
    mother_in_law = "mother_in_law"
    son_in_law = "son_in_law"
    daughter_in_law = "daughter_in_law"
    brother_in_law = "brother_in_law"
    sister_in_law = "sister_in_law"
    # step / adoptive
    stepparent = "stepparent"
    stepchild = "stepchild"
    stepsibling = "stepsibling"
    adoptive_parent = "adoptive_parent"
    adoptive_child = "adoptive_child"
    # divorce tracking
    ex_spouse = "ex_spouse"


class SuggestionStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    dismissed = "dismissed"


class ConnectionStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    withdrawn = "withdrawn"


def pair_key(a: int, b: int) -> tuple[int, int]:
    """Canonical order for an unordered person pair."""
    a, b = int(a), int(b)
    return (a, b) if a <= b else (b, a)


# ---------------------------
# USER MODEL
# ---------------------------
class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, index=True)
    is_active = Column(Boolean, default=True)


# --- People & Relationships ---

class Person(Base):
    __tablename__ = "person"
    id = Column(Integer, primary_key=True)
    owner_user_id = Column(ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    # the registered user who *is* this person, if any
    associated_user_id = Column(ForeignKey("user.id", ondelete="SET NULL"), index=True, nullable=True)
    given_name = Column(String(64), nullable=False)
    family_name = Column(String(64))
    display_name = Column(String(128))
    gender = Column(SAEnum(Gender), default=Gender.unknown, nullable=False)
    is_alive = Column(Boolean, default=True, nullable=False)
    notes = Column(Text)

    @property
    def full_name(self) -> str:
        if self.display_name:
            return self.display_name
        return " ".join(p for p in (self.given_name, self.family_name) if p)


class Relationship(Base):
    """
    person1 is <relationship_type> of person2.
    pair_low/pair_high hold the canonical pair so either storage order hits one index.
    """
    __tablename__ = "relationship"
    id = Column(Integer, primary_key=True)
    person1_id = Column(ForeignKey("person.id", ondelete="CASCADE"), index=True, nullable=False)
    person2_id = Column(ForeignKey("person.id", ondelete="CASCADE"), index=True, nullable=False)
    pair_low = Column(Integer, nullable=False)
    pair_high = Column(Integer, nullable=False)
    relationship_type = Column(String(32), index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    confidence = Column(String(16), default="high")  # high|medium|low|suggested
    added_by_user_id = Column(ForeignKey("user.id", ondelete="SET NULL"), index=True, nullable=True)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    person1 = relationship("Person", foreign_keys=[person1_id])
    person2 = relationship("Person", foreign_keys=[person2_id])

    __table_args__ = (
        CheckConstraint("person1_id <> person2_id", name="ck_relationship_not_self"),
        Index("ix_relationship_person1_type", "person1_id", "relationship_type"),
        Index("ix_relationship_person2_type", "person2_id", "relationship_type"),
    )


# at most one active relationship per unordered pair
Index(
    "uq_relationship_active_pair",
    Relationship.pair_low,
    Relationship.pair_high,
    unique=True,
    postgresql_where=Relationship.is_active == sa.true(),
    sqlite_where=Relationship.is_active == sa.true(),
)


class RelationshipSuggestion(Base):
    __tablename__ = "relationship_suggestion"
    id = Column(Integer, primary_key=True)
    person1_id = Column(ForeignKey("person.id", ondelete="CASCADE"), index=True, nullable=False)
    person2_id = Column(ForeignKey("person.id", ondelete="CASCADE"), index=True, nullable=False)
    pair_low = Column(Integer, nullable=False)
    pair_high = Column(Integer, nullable=False)
    relationship_type = Column(String(32), nullable=False)   # person1 is X of person2
    inverse_type = Column(String(32), nullable=True)          # person2 is Y of person1
    tier = Column(Integer, nullable=False, default=2)         # 2|3
    pattern = Column(String(32), nullable=True)               # uncle_aunt, cousin, ...
    reason = Column(Text, nullable=False)
    trigger_relationship_id = Column(ForeignKey("relationship.id", ondelete="SET NULL"), nullable=True)
    suggested_to_user_id = Column(ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    status = Column(String(16), default=SuggestionStatus.pending.value, nullable=False)  # pending|accepted|dismissed
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_relationship_id = Column(ForeignKey("relationship.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    person1 = relationship("Person", foreign_keys=[person1_id], lazy="selectin")
    person2 = relationship("Person", foreign_keys=[person2_id], lazy="selectin")
    created_relationship = relationship("Relationship", foreign_keys=[created_relationship_id])

    __table_args__ = (
        CheckConstraint("tier IN (2, 3)", name="ck_suggestion_tier"),
        Index("ix_suggestion_user_status", "suggested_to_user_id", "status"),
        Index("ix_suggestion_pair", "pair_low", "pair_high"),
    )


# at most one pending suggestion per unordered pair; inserts use ON CONFLICT DO NOTHING
Index(
    "uq_suggestion_pending_pair",
    RelationshipSuggestion.pair_low,
    RelationshipSuggestion.pair_high,
    unique=True,
    postgresql_where=RelationshipSuggestion.status == SuggestionStatus.pending.value,
    sqlite_where=RelationshipSuggestion.status == SuggestionStatus.pending.value,
)


class ConnectionRequest(Base):
    __tablename__ = "connection_request"
    id = Column(Integer, primary_key=True)
    requester_user_id = Column(ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    recipient_user_id = Column(ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    # requester_person is <relationship_type> of recipient_person
    requester_person_id = Column(ForeignKey("person.id", ondelete="CASCADE"), nullable=False)
    # chosen by the recipient on acceptance
    recipient_person_id = Column(ForeignKey("person.id", ondelete="CASCADE"), nullable=True)
    relationship_type = Column(String(32), nullable=False)
    message = Column(Text)
    status = Column(String(16), default=ConnectionStatus.pending.value, nullable=False)
    created_relationship_id = Column(ForeignKey("relationship.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_connection_recipient_status", "recipient_user_id", "status"),
    )
