"""FastAPI app: answer submission and plant/partner recommendations.

Submissions return as soon as they are stored; translation runs on the
background normalization queue started in the lifespan.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from i18n.translation import TranslationClient

from .config import settings
from .db import AsyncSessionMaker, get_session
from .logging_config import setup_logging
from .pipelines.ingest import AnswerIngestionError, submit_answers
from .pipelines.partners import PartnerMatchingError, recommend_partners
from .pipelines.plants import PlantMatchingError, recommend_plants
from .pipelines.translation import NormalizationQueue
from .repository import StoredAnswer, get_response_answers
from .schemas import (
    ErrorResponse,
    FieldError,
    HealthResponse,
    PartnerAddressDTO,
    PartnerRecommendationDTO,
    PartnerRecommendationsResponse,
    PlantRecommendationDTO,
    PlantRecommendationsResponse,
    SubmitAnswersRequest,
    SubmitAnswersResponse,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    logger.info("Application starting up")

    queue = None
    if settings.translation.enabled:
        queue = NormalizationQueue(
            getattr(app.state, "session_factory", None) or AsyncSessionMaker,
            getattr(app.state, "translator", None) or TranslationClient(),
        )
        queue.start()
    app.state.normalization_queue = queue

    yield

    # Shutdown
    if queue is not None:
        await queue.stop()
    logger.info("Application shutting down")


app = FastAPI(
    title="Garden Match",
    version=settings.version,
    description="Survey answers to plant and partner recommendations",
    lifespan=lifespan,
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report malformed payloads as 400 with per-field messages."""
    errors = [
        FieldError(
            field=".".join(str(part) for part in err["loc"] if part != "body"),
            message=err["msg"],
        )
        for err in exc.errors()
    ]
    logger.info(f"Validation failed for {request.url.path}: {len(errors)} errors")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error="validation_error",
            detail="Validation failed",
            errors=errors,
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(AnswerIngestionError)
async def ingestion_error_handler(request: Request, exc: AnswerIngestionError):
    """Handle failed submissions."""
    logger.error(f"Ingestion error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="ingestion_error",
            detail="Failed to store answers",
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(PlantMatchingError)
async def plant_matching_error_handler(request: Request, exc: PlantMatchingError):
    """Handle plant matcher failures."""
    logger.error(f"Plant matching error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="plant_matching_error",
            detail=str(exc),
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(PartnerMatchingError)
async def partner_matching_error_handler(request: Request, exc: PartnerMatchingError):
    """Handle partner matcher failures."""
    logger.error(f"Partner matching error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="partner_matching_error",
            detail=str(exc),
        ).model_dump(exclude_none=True),
    )


def get_normalization_queue(request: Request) -> NormalizationQueue | None:
    return getattr(request.app.state, "normalization_queue", None)


async def load_answers_or_404(session: AsyncSession, response_id: uuid.UUID) -> list[StoredAnswer]:
    answers = await get_response_answers(session, response_id)
    if not answers:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No answers found for response {response_id}",
        )
    return answers


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=settings.version,
    )


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "submit_answers": "/answers",
            "plant_recommendations": "/answers/{response_id}/plants",
            "partner_recommendations": "/answers/{response_id}/partners",
            "docs": "/docs" if settings.docs_enabled else None,
        },
    }


@app.post(
    "/answers",
    response_model=SubmitAnswersResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit(
    request: SubmitAnswersRequest,
    session: AsyncSession = Depends(get_session),
    queue: NormalizationQueue | None = Depends(get_normalization_queue),
) -> SubmitAnswersResponse:
    """Store a survey submission.

    The answers are committed in one transaction and the response id is
    returned immediately; language normalization runs afterwards in the
    background and may rewrite the stored values.
    """
    logger.info(f"Received submission with {len(request.answers)} answers")

    response_id = await submit_answers(session, request.answers, queue=queue)

    return SubmitAnswersResponse(
        response_id=response_id,
        message="Answers submitted successfully",
    )


@app.get(
    "/answers/{response_id}/plants",
    response_model=PlantRecommendationsResponse,
)
async def get_plant_recommendations(
    response_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> PlantRecommendationsResponse:
    """Plants matching the stored answers of a response."""
    answers = await load_answers_or_404(session, response_id)
    plants = await recommend_plants(session, answers)

    return PlantRecommendationsResponse(
        response_id=response_id,
        plant_recommendations=[
            PlantRecommendationDTO(
                id=p.id,
                name=p.common_name,
                scientific=p.scientific_name,
                image=p.image_search_url,
                description=p.description,
                why_recommended=p.why_recommended,
            )
            for p in plants
        ],
        message="Plant recommendations fetched successfully",
    )


@app.get(
    "/answers/{response_id}/partners",
    response_model=PartnerRecommendationsResponse,
)
async def get_partner_recommendations(
    response_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> PartnerRecommendationsResponse:
    """Active partners near the respondent, when the eligibility rules apply."""
    answers = await load_answers_or_404(session, response_id)
    partners = await recommend_partners(session, answers)

    message = (
        "Partner recommendations fetched successfully"
        if partners
        else "No partner recommendations applicable for this response"
    )
    return PartnerRecommendationsResponse(
        response_id=response_id,
        partner_recommendations=[
            PartnerRecommendationDTO(
                partner_id=p.partner_id,
                email=p.email,
                mobile_number=p.mobile_number,
                company_name=p.company_name,
                speciality=p.speciality,
                address=PartnerAddressDTO(**p.address),
                website=p.website,
                contact_person=p.contact_person,
                project_image_url=p.project_image_url,
                rating=p.rating,
                why_recommended=p.why_recommended,
            )
            for p in partners
        ],
        message=message,
    )
