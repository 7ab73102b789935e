"""Asynchronous client for the remote batch inference job service."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from types import TracebackType

import httpx

from affect.config import InferenceConfig
from affect.domain import (
    EmotionVector,
    ImageArtifact,
    InferenceJob,
    JobState,
    Resolution,
)
from affect.runtime.payload import (
    NoFaceDetected,
    SchemaError,
    extract_emotions,
    parse_job_id,
    parse_job_status,
)
from affect.runtime.phase_timing import (
    PHASE_POLLING,
    PHASE_RESULT_FETCH,
    format_duration,
    log_phase_completed,
    log_phase_started,
)
from affect.utils.logger import get_logger

type SleepCallable = Callable[[float], Awaitable[None]]

logger = get_logger(__name__)


class SubmissionError(RuntimeError):
    """Raised when the service rejects or cannot receive a job submission."""


class PollTimeoutError(TimeoutError):
    """Raised when a job is still running after the last allowed status query."""


class InferenceJobClient:
    """Submits captures as inference jobs and resolves them into emotion vectors.

    Transport and schema problems after submission never escape this class:
    :meth:`resolve` always returns a :class:`Resolution` whose state tells the
    caller whether a real vector is available.
    """

    def __init__(
        self,
        config: InferenceConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepCallable = asyncio.sleep,
    ) -> None:
        if not config.enabled:
            raise ValueError("An API key is required to create an inference client.")
        self.config = config
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=config.request_timeout_seconds
        )
        self._sleep = sleep

    async def __aenter__(self) -> InferenceJobClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Closes the HTTP client when this instance created it."""
        if self._owns_http_client:
            await self._http.aclose()

    @property
    def _headers(self) -> dict[str, str]:
        return {self.config.api_key_header: self.config.api_key}

    def _url(self, *parts: str) -> str:
        return "/".join([self.config.base_url.rstrip("/"), "jobs", *parts])

    async def submit(self, image: ImageArtifact) -> InferenceJob:
        """Creates a remote job for one image and discards the image payload.

        Raises:
            SubmissionError: On transport failure, a non-success status or a
                response without a job id.
        """
        try:
            response = await self._http.post(
                self._url(),
                headers=self._headers,
                files={"file": (image.filename, image.payload, image.mime_type)},
                data={"json": json.dumps(dict(self.config.model_descriptor))},
            )
        except httpx.HTTPError as err:
            raise SubmissionError(f"Job submission failed: {err}") from err
        finally:
            image.discard()

        if response.is_error:
            raise SubmissionError(
                f"Job submission rejected with status {response.status_code}: "
                f"{response.text[:200]}"
            )
        try:
            body = response.json()
        except ValueError as err:
            raise SubmissionError("Job submission returned a non-JSON body.") from err
        job_id = parse_job_id(body)
        if job_id is None:
            raise SubmissionError("Job submission response did not contain a job id.")
        return InferenceJob(id=job_id, submitted_at=time.time())

    async def _query_status(self, job: InferenceJob) -> JobState:
        try:
            response = await self._http.get(self._url(job.id), headers=self._headers)
        except httpx.HTTPError as err:
            logger.warning("Status query for job %s failed: %s", job.id, err)
            return JobState.FAILED
        if response.is_error:
            logger.warning(
                "Status query for job %s returned %s.", job.id, response.status_code
            )
            return JobState.FAILED
        try:
            body = response.json()
        except ValueError:
            logger.debug("Status body for job %s was not JSON; still waiting.", job.id)
            return JobState.RUNNING
        return parse_job_status(body)

    async def _poll_until_terminal(self, job: InferenceJob) -> JobState:
        for _ in range(self.config.max_poll_attempts):
            await self._sleep(self.config.poll_interval_seconds)
            job.poll_attempts += 1
            state = await self._query_status(job)
            job.state = state
            logger.debug(
                "Job %s status after poll %s/%s: %s",
                job.id,
                job.poll_attempts,
                self.config.max_poll_attempts,
                state.value,
            )
            if state.terminal:
                return state
        raise PollTimeoutError(
            f"Job {job.id} still running after {job.poll_attempts} status queries."
        )

    async def poll(
        self,
        job: InferenceJob,
        deadline_seconds: float | None = None,
    ) -> JobState:
        """Polls a job until it is terminal, its attempts run out or the deadline passes.

        Running out of attempts and deadline expiry both end in
        ``JobState.TIMED_OUT``; the abandoned remote job is not cancelled.
        """
        deadline = (
            self.config.deadline_seconds if deadline_seconds is None else deadline_seconds
        )
        try:
            state = await asyncio.wait_for(self._poll_until_terminal(job), timeout=deadline)
        except PollTimeoutError as err:
            logger.info("%s", err)
            state = JobState.TIMED_OUT
        except TimeoutError:
            logger.info(
                "Job %s exceeded the %.2fs polling deadline after %s status queries.",
                job.id,
                deadline,
                job.poll_attempts,
            )
            state = JobState.TIMED_OUT
        job.state = state
        return state

    async def _fetch_once(self, job: InferenceJob) -> EmotionVector:
        try:
            response = await self._http.get(
                self._url(job.id, "predictions"),
                headers={**self._headers, "accept": "application/json; charset=utf-8"},
            )
        except httpx.HTTPError as err:
            raise SchemaError(f"Predictions request failed: {err}") from err
        if response.is_error:
            raise SchemaError(f"Predictions request returned {response.status_code}.")
        try:
            body = response.json()
        except ValueError as err:
            raise SchemaError("Predictions body was not JSON.") from err
        return extract_emotions(body)

    async def fetch_result(self, job: InferenceJob) -> EmotionVector:
        """Fetches the emotions of a completed job with bounded retries.

        Returns:
            The first face's emotion scores, or an empty vector when no face
            was found or no well-formed payload arrived within the allowed
            attempts.
        """
        await self._sleep(self.config.result_settle_seconds)
        attempts = self.config.fetch_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return await self._fetch_once(job)
            except NoFaceDetected as err:
                logger.info("Job %s: %s", job.id, err)
                return ()
            except SchemaError as err:
                logger.debug(
                    "Predictions for job %s not usable yet (attempt %s/%s): %s",
                    job.id,
                    attempt,
                    attempts,
                    err,
                )
            if attempt < attempts:
                await self._sleep(self.config.fetch_retry_pause_seconds)
        logger.warning(
            "No valid predictions for job %s after %s attempts.", job.id, attempts
        )
        return ()

    async def resolve(
        self,
        image: ImageArtifact,
        *,
        question_id: str,
        deadline_seconds: float | None = None,
    ) -> Resolution:
        """Runs submit, poll and fetch for one capture without raising."""
        started_at = time.perf_counter()
        try:
            job = await self.submit(image)
        except SubmissionError as err:
            elapsed = time.perf_counter() - started_at
            logger.warning(
                "Inference unavailable for question %s after %s: %s",
                question_id,
                format_duration(elapsed),
                err,
            )
            return Resolution(state=JobState.FAILED, elapsed_seconds=elapsed)

        phase_started = log_phase_started(
            logger, phase_name=PHASE_POLLING, question_id=question_id
        )
        state = await self.poll(job, deadline_seconds)
        log_phase_completed(
            logger,
            phase_name=PHASE_POLLING,
            question_id=question_id,
            started_at=phase_started,
            level=logging.DEBUG,
        )
        vector: EmotionVector = ()
        if state is JobState.COMPLETED:
            phase_started = log_phase_started(
                logger, phase_name=PHASE_RESULT_FETCH, question_id=question_id
            )
            vector = await self.fetch_result(job)
            log_phase_completed(
                logger,
                phase_name=PHASE_RESULT_FETCH,
                question_id=question_id,
                started_at=phase_started,
                level=logging.DEBUG,
            )
        elapsed = time.perf_counter() - started_at
        resolution = Resolution(
            state=state, vector=vector, job_id=job.id, elapsed_seconds=elapsed
        )
        if resolution.is_real:
            logger.info(
                "Question %s resolved by job %s in %s with %s emotions.",
                question_id,
                job.id,
                format_duration(elapsed),
                len(vector),
            )
        else:
            logger.warning(
                "Question %s got no real signal (job=%s, outcome=%s, elapsed=%s).",
                question_id,
                job.id,
                "empty" if state is JobState.COMPLETED else state.value,
                format_duration(elapsed),
            )
        return resolution
