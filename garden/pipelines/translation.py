"""Background normalization of stored answers.

After a submission commits, its answers are queued here. A single consumer
detects the language of the first free-text value and, when it is one of
the configured source languages, translates the whole answer set and
rewrites the stored values in place. Jobs are delivered at most once and
never retried; every failure is logged with the response id and dropped.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from garden.config import settings
from garden.models import AnswerType
from garden.repository import StoredAnswer, format_address, update_answer_values

logger = logging.getLogger(__name__)


class Translator(Protocol):
    async def detect_language(self, text: str) -> str | None: ...

    async def translate_survey_text(self, text: str, target_language: str) -> str: ...


@dataclass(frozen=True)
class NormalizationJob:
    """One queued response awaiting normalization."""
    response_id: uuid.UUID
    answers: tuple[StoredAnswer, ...]


def first_free_text(answers: list[StoredAnswer]) -> str:
    """First choice selection, else the first address city, else ""."""
    for answer in answers:
        if answer.answer_type == AnswerType.CHOICE and answer.selected_option:
            return answer.selected_option
    for answer in answers:
        if answer.answer_type == AnswerType.ADDRESS and answer.city:
            return answer.city
    return ""


async def translate_answers(
    translator: Translator,
    answers: list[StoredAnswer],
    target_language: str,
) -> list[StoredAnswer]:
    """Translated copies of ``answers``; identities are unchanged."""
    translated = []
    for answer in answers:
        if answer.answer_type == AnswerType.ADDRESS and answer.selected_address:
            address = dict(answer.selected_address)
            for key in ("state", "city"):
                if address.get(key):
                    address[key] = await translator.translate_survey_text(address[key], target_language)
            translated.append(
                replace(answer, selected_address=address, selected_option=format_address(address))
            )
        else:
            value = await translator.translate_survey_text(answer.selected_option, target_language)
            translated.append(replace(answer, selected_option=value))
    return translated


async def normalize_response_answers(
    session: AsyncSession,
    translator: Translator,
    response_id: uuid.UUID,
    answers: list[StoredAnswer],
) -> bool:
    """Translate one response's answers if they are in a source language.

    Returns True when stored values were rewritten. Errors propagate; the
    queue consumer is responsible for swallowing them.
    """
    text = first_free_text(answers)
    if not text:
        logger.debug(f"Response {response_id}: no free text to detect")
        return False

    language = await translator.detect_language(text)
    source_languages = tuple(settings.translation.source_languages)
    if not language or not language.lower().startswith(source_languages):
        logger.debug(f"Response {response_id}: language {language!r} needs no normalization")
        return False

    target = settings.translation.target_language
    translated = await translate_answers(translator, answers, target)
    await update_answer_values(session, response_id, translated)

    logger.info(f"Response {response_id}: normalized {len(translated)} answers from {language} to {target}")
    return True


class NormalizationQueue:
    """Detached, at-most-once queue of normalization jobs.

    ``enqueue`` hands back nothing: callers cannot await, cancel or retry a
    job. The consumer task is owned by the application lifespan.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        translator: Translator,
        *,
        maxsize: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._translator = translator
        self._queue: asyncio.Queue[NormalizationJob] = asyncio.Queue(
            maxsize=maxsize or settings.worker.queue_size,
        )
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._consume(), name="answer-normalization")
        logger.info("Normalization worker started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Normalization worker stopped ({self._queue.qsize()} jobs dropped)")

    def enqueue(self, response_id: uuid.UUID, answers: list[StoredAnswer]) -> None:
        """Schedule a job; drops it with a warning if the queue cannot take it."""
        if not self.running:
            logger.warning(f"Normalization worker not running, skipping response {response_id}")
            return
        try:
            self._queue.put_nowait(NormalizationJob(response_id, tuple(answers)))
        except asyncio.QueueFull:
            logger.warning(f"Normalization queue full, skipping response {response_id}")

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def _consume(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._run(job)
            finally:
                self._queue.task_done()

    async def _run(self, job: NormalizationJob) -> None:
        try:
            async with self._session_factory() as session:
                await normalize_response_answers(
                    session,
                    self._translator,
                    job.response_id,
                    list(job.answers),
                )
        except Exception as e:
            logger.error(
                f"Background normalization failed for response {job.response_id}: {e}",
                extra={"response_id": str(job.response_id)},
                exc_info=True,
            )
