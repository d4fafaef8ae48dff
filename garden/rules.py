"""Rule engine deciding whether partner recommendations apply.

A rule matches when any of its conditions matches the corresponding choice
answer; conditions are checked in declaration order and the first match
wins. Every declared operator is evaluated as membership of the selected
value in the condition's values.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from . import models
from .models import AnswerType, ConditionOperator
from .repository import StoredAnswer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConditionConfig:
    """One condition of a rule."""
    question_id: uuid.UUID
    operator: ConditionOperator
    values: tuple[str, ...]


@dataclass
class RuleConfig:
    """Read-only snapshot of a stored rule."""
    id: uuid.UUID
    name: str
    conditions: list[ConditionConfig] = field(default_factory=list)


@dataclass(frozen=True)
class RuleMatch:
    """Which answer satisfied which rule."""
    question_id: uuid.UUID
    selected_value: str
    rule_name: str


@dataclass
class RuleEvaluation:
    """Result of evaluating a rule set against one response."""
    matched_rules: list[RuleConfig] = field(default_factory=list)
    matches: list[RuleMatch] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return bool(self.matched_rules)

    def distinct_values(self) -> list[str]:
        """Selected values that triggered a match, first-seen order."""
        return list(dict.fromkeys(m.selected_value for m in self.matches))


def partition_answers(
    answers: Iterable[StoredAnswer],
) -> tuple[dict[uuid.UUID, StoredAnswer], StoredAnswer | None]:
    """Split answers into choice answers by question and the address answer."""
    choices: dict[uuid.UUID, StoredAnswer] = {}
    address: StoredAnswer | None = None
    for answer in answers:
        if answer.answer_type == AnswerType.ADDRESS:
            if address is None:
                address = answer
        else:
            choices[answer.question_id] = answer
    return choices, address


class RuleEngine:
    """Evaluates stored rules against a response's answers."""

    def __init__(self, rules: list[RuleConfig]):
        self.rules = rules
        logger.debug(f"Initialized rule engine with {len(rules)} rules")

    def evaluate(self, answers: Iterable[StoredAnswer]) -> RuleEvaluation:
        """Return matched rules (in rule order) plus the match side channel."""
        choices, _ = partition_answers(answers)
        evaluation = RuleEvaluation()

        for rule in self.rules:
            match = self._evaluate_rule(rule, choices)
            if match is None:
                continue
            evaluation.matched_rules.append(rule)
            evaluation.matches.append(match)

        logger.info(
            f"Rule evaluation: {len(evaluation.matched_rules)}/{len(self.rules)} rules matched"
        )
        return evaluation

    @staticmethod
    def _evaluate_rule(
        rule: RuleConfig,
        choices: dict[uuid.UUID, StoredAnswer],
    ) -> RuleMatch | None:
        for condition in rule.conditions:
            answer = choices.get(condition.question_id)
            if answer is None or not answer.selected_option:
                continue
            # TODO: true AND/OR composition across conditions once product
            # defines it; every operator is plain membership for now.
            if answer.selected_option in condition.values:
                return RuleMatch(
                    question_id=condition.question_id,
                    selected_value=answer.selected_option,
                    rule_name=rule.name,
                )
        return None


async def load_rules(session: AsyncSession, name: str) -> list[RuleConfig]:
    """Load live rules with the given name, conditions in declaration order."""
    query = (
        select(models.Rule)
        .where(models.Rule.name == name, models.Rule.is_deleted.is_(False))
        .options(selectinload(models.Rule.conditions))
        .order_by(models.Rule.created_at, models.Rule.id)
    )
    result = await session.execute(query)

    rules = []
    for rule in result.scalars().all():
        conditions = []
        for condition in rule.conditions:
            try:
                operator = ConditionOperator(condition.operator)
            except ValueError:
                logger.warning(
                    f"Rule {rule.id} has unknown operator {condition.operator!r}, treating as 'in'"
                )
                operator = ConditionOperator.IN
            conditions.append(
                ConditionConfig(
                    question_id=condition.question_id,
                    operator=operator,
                    values=tuple(condition.values or ()),
                )
            )
        rules.append(RuleConfig(id=rule.id, name=rule.name, conditions=conditions))

    logger.info(f"Loaded {len(rules)} rules named {name!r}")
    return rules
