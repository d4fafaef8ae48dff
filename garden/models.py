"""Core SQLAlchemy models (2.x style) for survey answers, rules and catalogs.

Portable across PostgreSQL (production) and SQLite (tests): UUID keys use
the generic ``Uuid`` type and list-valued columns use JSON.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from .pipelines.normalization import normalize_location


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class AnswerType(int, Enum):
    """Kind of a survey answer."""
    CHOICE = 1
    ADDRESS = 2


class QuestionCategory(str, Enum):
    """Semantic slot a question feeds into the plant matcher."""
    SPACE_TYPE = "space_type"
    AREA_SIZE = "area_size"
    CHALLENGE = "challenge"
    TECH_PREFERENCE = "tech_preference"
    LOCATION = "location"


class ConditionOperator(str, Enum):
    """Declared operator of a rule condition."""
    EQUALS = "equals"
    IN = "in"
    AND = "and"
    OR = "or"


class SurveyResponse(Base):
    """One survey submission."""
    __tablename__ = "survey_responses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    answers: Mapped[list[SurveyAnswer]] = relationship(
        "SurveyAnswer",
        back_populates="response",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class SurveyAnswer(Base):
    """One (response, question) answer."""
    __tablename__ = "survey_answers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    response_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("survey_responses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    answer_type: Mapped[int] = mapped_column(Integer, nullable=False)
    # Choice text, or "<state> / <city>" for address answers
    selected_option: Mapped[str] = mapped_column(Text, nullable=False)
    selected_address: Mapped[dict | None] = mapped_column(JSON)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    response: Mapped[SurveyResponse] = relationship("SurveyResponse", back_populates="answers")

    __table_args__ = (
        UniqueConstraint("response_id", "question_id", name="uq_survey_answers_response_question"),
    )


class Question(Base):
    """Survey question (managed by admin tooling, read-only here)."""
    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    order: Mapped[int | None] = mapped_column(Integer)
    category: Mapped[str | None] = mapped_column(String(50), index=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)


class Rule(Base):
    """Named eligibility policy."""
    __tablename__ = "rules"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    affiliate_for: Mapped[str | None] = mapped_column(String(255))
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    conditions: Mapped[list[RuleCondition]] = relationship(
        "RuleCondition",
        back_populates="rule",
        order_by="RuleCondition.position",
        cascade="all, delete-orphan",
    )


class RuleCondition(Base):
    """One clause of a rule."""
    __tablename__ = "rule_conditions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    rule_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("rules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    operator: Mapped[str] = mapped_column(String(20), nullable=False, default=ConditionOperator.EQUALS.value)
    values: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    rule: Mapped[Rule] = relationship("Rule", back_populates="conditions")


class Plant(Base):
    """Plant catalog entry."""
    __tablename__ = "plants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    scientific_name: Mapped[str] = mapped_column(String(255), nullable=False)
    common_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    image_search_url: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    light: Mapped[str | None] = mapped_column(String(100))
    water_needs: Mapped[str | None] = mapped_column(String(100))
    maintenance_level: Mapped[str | None] = mapped_column(String(100))
    growth_form: Mapped[str | None] = mapped_column(String(100))
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    space_types: Mapped[list[PlantSpaceType]] = relationship(cascade="all, delete-orphan")
    area_sizes: Mapped[list[PlantAreaSize]] = relationship(cascade="all, delete-orphan")
    challenges: Mapped[list[PlantChallenge]] = relationship(cascade="all, delete-orphan")
    tech_preferences: Mapped[list[PlantTechPreference]] = relationship(cascade="all, delete-orphan")
    locations: Mapped[list[PlantLocation]] = relationship(cascade="all, delete-orphan")


class PlantSpaceType(Base):
    __tablename__ = "plant_space_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("plants.id", ondelete="CASCADE"), nullable=False, index=True)
    space_type: Mapped[str] = mapped_column(String(100), nullable=False)


class PlantAreaSize(Base):
    __tablename__ = "plant_area_sizes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("plants.id", ondelete="CASCADE"), nullable=False, index=True)
    area_size: Mapped[str] = mapped_column(String(100), nullable=False)


class PlantChallenge(Base):
    __tablename__ = "plant_challenges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("plants.id", ondelete="CASCADE"), nullable=False, index=True)
    challenge: Mapped[str] = mapped_column(String(255), nullable=False)


class PlantTechPreference(Base):
    __tablename__ = "plant_tech_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("plants.id", ondelete="CASCADE"), nullable=False, index=True)
    tech_preference: Mapped[str] = mapped_column(String(100), nullable=False)


class PlantLocation(Base):
    """(location type, location value) pair where a plant applies.

    Normalized copies of both fields are maintained on assignment.
    """
    __tablename__ = "plant_locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("plants.id", ondelete="CASCADE"), nullable=False, index=True)
    location_type: Mapped[str] = mapped_column(String(100), nullable=False)
    location_value: Mapped[str] = mapped_column(String(255), nullable=False)
    location_type_normalized: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    location_value_normalized: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    __table_args__ = (
        Index("ix_plant_locations_normalized", "location_type_normalized", "location_value_normalized"),
    )

    @validates("location_type", "location_value")
    def _sync_normalized(self, key: str, value: str) -> str:
        setattr(self, f"{key}_normalized", normalize_location(value))
        return value


class PartnerProfile(Base):
    """Service partner catalog entry."""
    __tablename__ = "partner_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    mobile_number: Mapped[str] = mapped_column(String(20), nullable=False)
    company_name: Mapped[str | None] = mapped_column(String(255))
    speciality_1: Mapped[str | None] = mapped_column(String(100))
    speciality_2: Mapped[str | None] = mapped_column(String(100))
    speciality_3: Mapped[str | None] = mapped_column(String(100))
    street: Mapped[str | None] = mapped_column(String(255))
    city: Mapped[str | None] = mapped_column(String(100))
    state: Mapped[str | None] = mapped_column(String(100))
    country: Mapped[str | None] = mapped_column(String(100))
    zip_code: Mapped[str | None] = mapped_column(String(20))
    website: Mapped[str | None] = mapped_column(String(255))
    contact_person: Mapped[str | None] = mapped_column(String(150))
    project_image_url: Mapped[str | None] = mapped_column(Text)
    rating: Mapped[float | None] = mapped_column(Numeric(2, 1, asdecimal=False))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    city_normalized: Mapped[str | None] = mapped_column(String(100))
    state_normalized: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_partner_profiles_location_status", "state_normalized", "city_normalized", "status"),
        Index("ix_partner_profiles_rating", "rating"),
    )

    @validates("state", "city")
    def _sync_normalized(self, key: str, value: str | None) -> str | None:
        setattr(self, f"{key}_normalized", normalize_location(value) if value else None)
        return value

    @property
    def specialities(self) -> list[str]:
        return [s for s in (self.speciality_1, self.speciality_2, self.speciality_3) if s]
