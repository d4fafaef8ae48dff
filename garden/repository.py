"""Answer store: persistence and lookup of survey responses and answers."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import JSON, bindparam, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from . import models
from .pipelines.normalization import normalize_location
from .schemas import AnswerInput

logger = logging.getLogger(__name__)


@dataclass
class StoredAnswer:
    """Answer as read back from (or written to) the store."""
    question_id: uuid.UUID
    answer_type: int
    selected_option: str
    selected_address: dict | None = None

    @property
    def state(self) -> str | None:
        return (self.selected_address or {}).get("state")

    @property
    def city(self) -> str | None:
        return (self.selected_address or {}).get("city")

    @classmethod
    def from_input(cls, answer: AnswerInput) -> StoredAnswer:
        if answer.type == models.AnswerType.ADDRESS:
            address = answer.selected_address.model_dump(exclude_none=True)
            return cls(
                question_id=answer.question_id,
                answer_type=answer.type,
                selected_option=format_address(address),
                selected_address=address,
            )
        return cls(
            question_id=answer.question_id,
            answer_type=answer.type,
            selected_option=answer.selected_option,
        )


def format_address(address: dict) -> str:
    return f"{address.get('state')} / {address.get('city')}"


async def create_survey_response(
    session: AsyncSession,
    answers: Iterable[StoredAnswer],
) -> uuid.UUID:
    """Insert a response and all of its answers in one transaction.

    Commits on success; on any failure the transaction is rolled back so
    no response or answer row remains, and the error propagates.
    """
    try:
        response = models.SurveyResponse()
        session.add(response)
        await session.flush()

        rows = [
            {
                "id": uuid.uuid4(),
                "response_id": response.id,
                "question_id": a.question_id,
                "answer_type": int(a.answer_type),
                "selected_option": a.selected_option,
                "selected_address": a.selected_address,
                "position": position,
            }
            for position, a in enumerate(answers)
        ]
        await session.execute(insert(models.SurveyAnswer), rows)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Stored response {response.id} with {len(rows)} answers")
    return response.id


async def get_response_answers(
    session: AsyncSession,
    response_id: uuid.UUID,
) -> list[StoredAnswer]:
    """Answers of a live (not soft-deleted) response, in insertion order."""
    query = (
        select(models.SurveyAnswer)
        .join(models.SurveyResponse, models.SurveyResponse.id == models.SurveyAnswer.response_id)
        .where(
            models.SurveyAnswer.response_id == response_id,
            models.SurveyResponse.is_deleted.is_(False),
        )
        .order_by(models.SurveyAnswer.position)
    )
    result = await session.execute(query)
    return [
        StoredAnswer(
            question_id=row.question_id,
            answer_type=row.answer_type,
            selected_option=row.selected_option,
            selected_address=row.selected_address,
        )
        for row in result.scalars().all()
    ]


async def update_answer_values(
    session: AsyncSession,
    response_id: uuid.UUID,
    answers: list[StoredAnswer],
) -> None:
    """Rewrite stored values keyed by (response, question) in one batch."""
    if not answers:
        return

    # Core statement: executemany with arbitrary WHERE criteria
    table = models.SurveyAnswer.__table__
    stmt = (
        update(table)
        .where(
            table.c.response_id == bindparam("b_response_id"),
            table.c.question_id == bindparam("b_question_id"),
        )
        .values(
            selected_option=bindparam("b_selected_option"),
            selected_address=bindparam("b_selected_address", type_=JSON),
        )
    )
    params = [
        {
            "b_response_id": response_id,
            "b_question_id": a.question_id,
            "b_selected_option": a.selected_option,
            "b_selected_address": a.selected_address,
        }
        for a in answers
    ]
    try:
        connection = await session.connection()
        await connection.execute(stmt, params)
        await session.commit()
    except Exception:
        await session.rollback()
        raise


async def load_question_categories(
    session: AsyncSession,
    question_ids: Iterable[uuid.UUID],
) -> dict[uuid.UUID, models.QuestionCategory]:
    """Category tag of each known, live question."""
    ids = list(question_ids)
    if not ids:
        return {}
    query = select(models.Question.id, models.Question.category).where(
        models.Question.id.in_(ids),
        models.Question.is_deleted.is_(False),
        models.Question.category.is_not(None),
    )
    result = await session.execute(query)
    categories = {}
    for question_id, category in result.all():
        try:
            categories[question_id] = models.QuestionCategory(category)
        except ValueError:
            logger.warning(f"Question {question_id} has unknown category {category!r}")
    return categories


async def sync_location_columns(session: AsyncSession) -> int:
    """Recompute the normalized location columns of partners and plant locations.

    Rows written outside the ORM (Core statements, raw SQL, bulk loads) skip
    the ``@validates`` hooks and keep NULL or stale normalized values; this
    rewrites every row whose stored value differs. Returns the number of
    rows updated.
    """
    targets = [
        (models.PartnerProfile.__table__, ("state", "city")),
        (models.PlantLocation.__table__, ("location_type", "location_value")),
    ]
    updated = 0
    try:
        connection = await session.connection()
        for table, columns in targets:
            result = await connection.execute(
                select(table.c.id, *[table.c[c] for c in columns], *[table.c[f"{c}_normalized"] for c in columns])
            )
            params = []
            for row in result.mappings():
                expected = {
                    f"b_{c}": _normalized_or_none(row[c], table.c[f"{c}_normalized"].nullable)
                    for c in columns
                }
                if any(expected[f"b_{c}"] != row[f"{c}_normalized"] for c in columns):
                    params.append({"b_id": row["id"], **expected})
            if not params:
                continue

            stmt = (
                update(table)
                .where(table.c.id == bindparam("b_id"))
                .values({f"{c}_normalized": bindparam(f"b_{c}") for c in columns})
            )
            await connection.execute(stmt, params)
            updated += len(params)
            logger.info(f"Resynced normalized locations of {len(params)} rows in {table.name}")
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return updated


def _normalized_or_none(value: str | None, nullable: bool) -> str | None:
    if not value:
        return None if nullable else ""
    return normalize_location(value)
