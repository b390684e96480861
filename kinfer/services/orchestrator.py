from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from kinfer.services.graph import GraphAccessor, PersonNotFound
from kinfer.services.materializer import ProposeOutcome, SuggestionMaterializer
from kinfer.services.rules import InferenceTrigger, KinshipRule, RULES, normalize_edge_type, rules_for
from kinfer.services.terms import TermResolver
from kinfer.settings.config import settings

logger = logging.getLogger(__name__)


@dataclass
class InferenceReport:
    trigger: InferenceTrigger
    created: int = 0
    skipped: int = 0
    failed_rules: List[str] = field(default_factory=list)


class InferenceOrchestrator:
    """Runs every rule registered for a newly committed edge and materializes the results.

    Collaborators are injected so workers, the backfill job and tests can
    each supply their own session factory and store.
    """

    def __init__(
        self,
        session_maker: Callable[[], AsyncSession],
        *,
        resolver: Optional[TermResolver] = None,
        materializer: Optional[SuggestionMaterializer] = None,
        rules: Optional[Iterable[KinshipRule]] = None,
        graph_factory: Callable[[AsyncSession], GraphAccessor] = GraphAccessor,
        max_tier: Optional[int] = None,
    ):
        self.session_maker = session_maker
        self.resolver = resolver or TermResolver()
        self.materializer = materializer or SuggestionMaterializer()
        self.rules = tuple(rules) if rules is not None else RULES
        self.graph_factory = graph_factory
        self.max_tier = int(max_tier if max_tier is not None else settings.INFERENCE_MAX_TIER)

    async def on_relationship_established(
        self,
        edge_type,
        person_a: int,
        person_b: int,
        owner_id: int,
        *,
        trigger_relationship_id: Optional[int] = None,
    ) -> InferenceReport:
        trigger = InferenceTrigger(
            edge_type=normalize_edge_type(edge_type),
            person_a=int(person_a),
            person_b=int(person_b),
            owner_id=int(owner_id),
            relationship_id=trigger_relationship_id,
        )
        return await self.run(trigger)

    async def run(self, trigger: InferenceTrigger) -> InferenceReport:
        report = InferenceReport(trigger=trigger)
        applicable = rules_for(trigger.edge_type, self.max_tier, self.rules)
        if not applicable:
            logger.debug("No inference rules for edge type %r", trigger.edge_type)
            return report

        async with self.session_maker() as db:
            graph = self.graph_factory(db)
            for rule in applicable:
                try:
                    await self._run_rule(db, graph, rule, trigger, report)
                except PersonNotFound as exc:
                    report.failed_rules.append(rule.name)
                    logger.warning(
                        "inference rule failed: rule=%s edge=%s a=%s b=%s reason=data-integrity person=%s",
                        rule.name, trigger.edge_type, trigger.person_a, trigger.person_b, exc.person_id,
                    )
                except Exception:
                    report.failed_rules.append(rule.name)
                    logger.exception(
                        "inference rule failed: rule=%s edge=%s a=%s b=%s",
                        rule.name, trigger.edge_type, trigger.person_a, trigger.person_b,
                    )
                    await db.rollback()
                    # rollback expired everything the accessor cached
                    graph = self.graph_factory(db)

        logger.info(
            "Inference for %s(%s, %s): created=%s skipped=%s failed=%s",
            trigger.edge_type, trigger.person_a, trigger.person_b,
            report.created, report.skipped, report.failed_rules,
        )
        return report

    async def _run_rule(self, db, graph, rule: KinshipRule, trigger: InferenceTrigger, report: InferenceReport):
        candidates = await rule.apply(graph, trigger, self.resolver)
        for c in candidates:
            outcome = await self.materializer.propose(
                db,
                person_a=c.subject_id,
                person_b=c.target_id,
                relationship_type=c.relationship_type,
                inverse_type=c.inverse_type,
                tier=c.tier,
                justification=c.reason,
                owner_id=trigger.owner_id,
                pattern=c.pattern,
                trigger_relationship_id=trigger.relationship_id,
            )
            if outcome is ProposeOutcome.created:
                report.created += 1
            else:
                report.skipped += 1
