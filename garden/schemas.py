"""Pydantic request/response schemas for the HTTP surface.

Fields are snake_case in Python and camelCase on the wire.
"""
from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase and accepting either casing."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SelectedAddress(CamelModel):
    """Address payload of a type=2 answer."""
    model_config = ConfigDict(extra="forbid")

    state: str = Field(min_length=1)
    city: str = Field(min_length=1)
    street: str | None = None
    country: str | None = None
    zip_code: str | None = None

    @field_validator("state", "city")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class AnswerInput(CamelModel):
    """One answer of a submission: type 1 = choice, type 2 = address."""
    model_config = ConfigDict(extra="forbid")

    question_id: uuid.UUID
    type: Literal[1, 2]
    selected_option: str | None = Field(default=None, min_length=1)
    selected_address: SelectedAddress | None = None

    @model_validator(mode="after")
    def check_kind_value(self) -> AnswerInput:
        if self.type == 1:
            if self.selected_option is None:
                raise ValueError("selectedOption is required when type=1")
            if self.selected_address is not None:
                raise ValueError("selectedAddress is not allowed when type=1")
        else:
            if self.selected_address is None:
                raise ValueError("selectedAddress is required when type=2")
            if self.selected_option is not None:
                raise ValueError("selectedOption is not allowed when type=2")
        return self


class SubmitAnswersRequest(CamelModel):
    """Body of POST /answers."""
    model_config = ConfigDict(extra="forbid")

    answers: list[AnswerInput] = Field(min_length=1)

    @field_validator("answers")
    @classmethod
    def unique_questions(cls, v: list[AnswerInput]) -> list[AnswerInput]:
        seen: set[uuid.UUID] = set()
        for answer in v:
            if answer.question_id in seen:
                raise ValueError(f"Duplicate answer for question {answer.question_id}")
            seen.add(answer.question_id)
        return v


class SubmitAnswersResponse(CamelModel):
    status: str = "success"
    response_id: uuid.UUID
    message: str


class PlantRecommendationDTO(CamelModel):
    """Plant recommendation item."""
    id: uuid.UUID
    name: str
    scientific: str
    image: str | None = None
    description: str | None = None
    why_recommended: list[str] = Field(default_factory=list)


class PartnerAddressDTO(CamelModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    zip_code: str | None = None


class PartnerRecommendationDTO(CamelModel):
    """Partner recommendation item."""
    partner_id: uuid.UUID
    email: str
    mobile_number: str
    company_name: str | None = None
    speciality: list[str] = Field(default_factory=list)
    address: PartnerAddressDTO
    website: str | None = None
    contact_person: str | None = None
    project_image_url: str | None = None
    rating: float | None = None
    why_recommended: str


class PlantRecommendationsResponse(CamelModel):
    status: str = "success"
    response_id: uuid.UUID
    plant_recommendations: list[PlantRecommendationDTO]
    message: str


class PartnerRecommendationsResponse(CamelModel):
    status: str = "success"
    response_id: uuid.UUID
    partner_recommendations: list[PartnerRecommendationDTO]
    message: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None
    errors: list[FieldError] | None = None
