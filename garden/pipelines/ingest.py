"""Answer ingestion: persist a submission, then hand it to the background
normalization queue.

The response id is returned as soon as the transaction commits; translation
never blocks the caller and its outcome never affects ingestion.
"""

from __future__ import annotations

import logging
import uuid
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..repository import StoredAnswer, create_survey_response
from ..schemas import AnswerInput
from .translation import NormalizationQueue

logger = logging.getLogger(__name__)


class AnswerIngestionError(Exception):
    """Raised when a submission cannot be stored."""
    pass


async def submit_answers(
    session: AsyncSession,
    answers: Sequence[AnswerInput],
    *,
    queue: NormalizationQueue | None = None,
) -> uuid.UUID:
    """Store one submission atomically and schedule its normalization.

    Args:
        session: Database session
        answers: Validated answers of the submission
        queue: Background normalization queue (skipped when None)

    Returns:
        Identifier of the new response

    Raises:
        AnswerIngestionError: If the transaction fails (nothing is stored)
    """
    stored = [StoredAnswer.from_input(a) for a in answers]

    try:
        response_id = await create_survey_response(session, stored)
    except Exception as e:
        logger.error(f"Answer ingestion failed: {e}", exc_info=True)
        raise AnswerIngestionError(f"Failed to store answers: {e}") from e

    if queue is not None:
        queue.enqueue(response_id, stored)

    return response_id
