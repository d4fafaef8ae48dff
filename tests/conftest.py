from __future__ import annotations

import asyncio
import uuid

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from garden import models
from garden.config import settings


class FakeTranslator:
    """In-memory stand-in for TranslationClient."""

    def __init__(self, language: str | None = "pt", translations: dict[str, str] | None = None):
        self.language = language
        self.translations = translations or {}
        self.detect_calls: list[str] = []
        self.translate_calls: list[str] = []
        self.fail_detection = False
        # When set, detection waits for it
        self.release: asyncio.Event | None = None

    async def detect_language(self, text: str) -> str | None:
        self.detect_calls.append(text)
        if self.release is not None:
            await self.release.wait()
        if self.fail_detection:
            raise RuntimeError("detection service down")
        return self.language

    async def translate_survey_text(self, text: str, target_language: str) -> str:
        self.translate_calls.append(text)
        return self.translations.get(text, text)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def translator():
    return FakeTranslator()


@pytest.fixture
def add_question(session):
    async def _add(category: models.QuestionCategory | None, text: str = "Survey question?") -> uuid.UUID:
        question = models.Question(
            question_text=text,
            category=category.value if category else None,
        )
        session.add(question)
        await session.commit()
        return question.id

    return _add


@pytest.fixture
def add_rule(session):
    async def _add(
        conditions: list[tuple[uuid.UUID, list[str]]],
        *,
        name: str | None = None,
        operator: str = "in",
        is_deleted: bool = False,
    ) -> models.Rule:
        rule = models.Rule(
            name=name or settings.recommendations.partner_rule_name,
            is_deleted=is_deleted,
            conditions=[
                models.RuleCondition(question_id=qid, operator=operator, values=values, position=i)
                for i, (qid, values) in enumerate(conditions)
            ],
        )
        session.add(rule)
        await session.commit()
        return rule

    return _add


@pytest.fixture
def add_partner(session):
    async def _add(
        *,
        state: str = "SP",
        city: str = "São Paulo",
        rating: float | None = 4.5,
        status: str = "active",
        company_name: str = "Verde Jardins",
    ) -> models.PartnerProfile:
        partner = models.PartnerProfile(
            email=f"{uuid.uuid4().hex[:8]}@example.com",
            mobile_number="+55 11 99999-0000",
            company_name=company_name,
            speciality_1="Landscaping",
            state=state,
            city=city,
            country="Brazil",
            rating=rating,
            status=status,
        )
        session.add(partner)
        await session.commit()
        return partner

    return _add


@pytest.fixture
def add_plant(session):
    async def _add(
        common_name: str,
        *,
        space_types: list[str] = (),
        area_sizes: list[str] = (),
        challenges: list[str] = (),
        tech_preferences: list[str] = (),
        locations: list[tuple[str, str]] = (),
        is_deleted: bool = False,
    ) -> models.Plant:
        plant = models.Plant(
            common_name=common_name,
            scientific_name=f"{common_name} scientifica",
            description=f"A {common_name.lower()}",
            is_deleted=is_deleted,
            space_types=[models.PlantSpaceType(space_type=v) for v in space_types],
            area_sizes=[models.PlantAreaSize(area_size=v) for v in area_sizes],
            challenges=[models.PlantChallenge(challenge=v) for v in challenges],
            tech_preferences=[models.PlantTechPreference(tech_preference=v) for v in tech_preferences],
            locations=[models.PlantLocation(location_type=t, location_value=v) for t, v in locations],
        )
        session.add(plant)
        await session.commit()
        return plant

    return _add
