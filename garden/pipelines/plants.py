"""Plant matcher: answers -> filtered, explained plant recommendations.

Each answer becomes one filter predicate according to its question's
category tag; address answers always filter on location. A plant must
satisfy every filter.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import and_, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from garden import models
from garden.config import settings
from garden.models import AnswerType, QuestionCategory
from garden.pipelines.normalization import matches_location, normalized_variations
from garden.repository import StoredAnswer, load_question_categories

logger = logging.getLogger(__name__)


# category -> (tag model, tag column name, plant relationship, label)
TAG_FILTERS: dict[QuestionCategory, tuple[type[models.Base], str, str, str]] = {
    QuestionCategory.SPACE_TYPE: (models.PlantSpaceType, "space_type", "space_types", "space type"),
    QuestionCategory.AREA_SIZE: (models.PlantAreaSize, "area_size", "area_sizes", "area size"),
    QuestionCategory.CHALLENGE: (models.PlantChallenge, "challenge", "challenges", "challenge"),
    QuestionCategory.TECH_PREFERENCE: (
        models.PlantTechPreference,
        "tech_preference",
        "tech_preferences",
        "tech preference",
    ),
}


@dataclass
class PlantFilter:
    """One filter derived from one answer."""
    category: QuestionCategory
    value: str | None = None
    state: str | None = None
    city: str | None = None

    @property
    def label(self) -> str:
        if self.category == QuestionCategory.LOCATION:
            return "location"
        return TAG_FILTERS[self.category][3]

    @property
    def display_value(self) -> str:
        if self.category == QuestionCategory.LOCATION:
            return f"{self.city}, {self.state}"
        return self.value or ""


@dataclass
class PlantRecommendation:
    """Plant plus the reasons it was recommended."""
    id: uuid.UUID
    common_name: str
    scientific_name: str
    image_search_url: str | None
    description: str | None
    why_recommended: list[str] = field(default_factory=list)


class PlantMatchingError(Exception):
    """Raised when the plant catalog query fails."""
    pass


def build_plant_filters(
    answers: list[StoredAnswer],
    categories: dict[uuid.UUID, QuestionCategory],
) -> list[PlantFilter]:
    """One filter per answer with a known category and a non-empty value."""
    filters = []
    for answer in answers:
        if answer.answer_type == AnswerType.ADDRESS:
            if answer.state:
                filters.append(
                    PlantFilter(QuestionCategory.LOCATION, state=answer.state, city=answer.city)
                )
            continue

        category = categories.get(answer.question_id)
        if category is None or not answer.selected_option:
            continue
        if category == QuestionCategory.LOCATION:
            # A choice can't carry a (state, city) pair
            logger.debug(f"Ignoring choice answer on location question {answer.question_id}")
            continue
        filters.append(PlantFilter(category, value=answer.selected_option))
    return filters


def _predicate(plant_filter: PlantFilter):
    if plant_filter.category == QuestionCategory.LOCATION:
        criteria = [
            models.PlantLocation.plant_id == models.Plant.id,
            models.PlantLocation.location_type_normalized.in_(normalized_variations(plant_filter.state)),
        ]
        if plant_filter.city:
            criteria.append(
                models.PlantLocation.location_value_normalized.in_(normalized_variations(plant_filter.city))
            )
        return exists().where(and_(*criteria))

    tag_model, column_name, _, _ = TAG_FILTERS[plant_filter.category]
    column = getattr(tag_model, column_name)
    return exists().where(
        tag_model.plant_id == models.Plant.id,
        # PostgreSQL lower() folds any script; SQLite folds ASCII only
        # (test data for tag filters stays ASCII)
        func.lower(column).contains(plant_filter.value.lower(), autoescape=True),
    )


def _satisfies(plant: models.Plant, plant_filter: PlantFilter) -> bool:
    if plant_filter.category == QuestionCategory.LOCATION:
        return any(
            matches_location(loc.location_type, plant_filter.state)
            and (not plant_filter.city or matches_location(loc.location_value, plant_filter.city))
            for loc in plant.locations
        )

    _, column_name, relationship_name, _ = TAG_FILTERS[plant_filter.category]
    needle = plant_filter.value.lower()
    return any(needle in getattr(tag, column_name).lower() for tag in getattr(plant, relationship_name))


def explain_plant(plant: models.Plant, filters: list[PlantFilter]) -> list[str]:
    """One reason per satisfied filter category, in filter order."""
    reasons = []
    seen = set()
    for plant_filter in filters:
        if not _satisfies(plant, plant_filter):
            continue
        reason = f"Matches preference for {plant_filter.label} ({plant_filter.display_value})"
        if reason not in seen:
            seen.add(reason)
            reasons.append(reason)
    return reasons


async def recommend_plants(
    session: AsyncSession,
    answers: list[StoredAnswer],
    *,
    limit: int | None = None,
) -> list[PlantRecommendation]:
    """Plants satisfying every answer-derived filter, with match reasons.

    Args:
        session: Database session
        answers: Stored answers of one response
        limit: Maximum number of plants (default from config)

    Returns:
        Up to ``limit`` recommendations ordered by common name

    Raises:
        PlantMatchingError: If the catalog query fails
    """
    limit = limit or settings.recommendations.plant_limit

    try:
        categories = await load_question_categories(session, {a.question_id for a in answers})
        filters = build_plant_filters(answers, categories)
        logger.info(f"Plant matching with {len(filters)} filters")

        query = (
            select(models.Plant)
            .where(models.Plant.is_deleted.is_(False), *[_predicate(f) for f in filters])
            .options(
                selectinload(models.Plant.space_types),
                selectinload(models.Plant.area_sizes),
                selectinload(models.Plant.challenges),
                selectinload(models.Plant.tech_preferences),
                selectinload(models.Plant.locations),
            )
            .order_by(models.Plant.common_name, models.Plant.id)
            .limit(limit)
        )
        result = await session.execute(query)
        plants = result.scalars().all()

    except Exception as e:
        logger.error(f"Plant matching failed: {e}", exc_info=True)
        raise PlantMatchingError(f"Plant recommendation query failed: {e}") from e

    return [
        PlantRecommendation(
            id=plant.id,
            common_name=plant.common_name,
            scientific_name=plant.scientific_name,
            image_search_url=plant.image_search_url,
            description=plant.description,
            why_recommended=explain_plant(plant, filters),
        )
        for plant in plants
    ]
