"""Tests for capture routing, fallback and session lifecycle."""

import asyncio
from dataclasses import replace
from datetime import UTC, datetime

import httpx
import pytest

from affect.config import InferenceConfig
from affect.domain import (
    CaptureKey,
    EmotionScore,
    ExpressionSource,
    ImageArtifact,
    QuestionExpression,
)
from affect.runtime.client import InferenceJobClient
from affect.runtime.fallback import synthesize
from affect.runtime.pipeline import AffectPipeline
from affect.store import DuplicateKeyError, ExpressionStore
from affect.taxonomy import normalize_vector
from conftest import no_sleep, predictions_payload


def _image() -> ImageArtifact:
    return ImageArtifact(payload=b"jpeg")


def _service(status: str, emotions: list[dict[str, object]]):
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"id": "job-7"})
        if request.url.path.endswith("/predictions"):
            return httpx.Response(200, json=predictions_payload(emotions))
        return httpx.Response(200, json={"status": status})

    return _handler


def _client(handler, config: InferenceConfig, make_http_client) -> InferenceJobClient:
    return InferenceJobClient(config, http_client=make_http_client(handler), sleep=no_sleep)


def test_real_inference_is_normalized_and_stored(
    inference_config: InferenceConfig, make_http_client
) -> None:
    """A completed job stores a real vector with canonical labels."""
    client = _client(
        _service("COMPLETED", [{"name": "Happiness", "score": 0.9}, {"name": "Doubt", "score": 0.1}]),
        inference_config,
        make_http_client,
    )

    async def _run():
        async with AffectPipeline(client=client) as pipeline:
            expression = await pipeline.capture(CaptureKey("technical", "q1", 0), _image())
            return expression, pipeline.report()

    expression, aggregate = asyncio.run(_run())

    assert expression.source is ExpressionSource.REAL
    assert expression.vector == (EmotionScore("Joy", 0.9), EmotionScore("Nervous", 0.1))
    assert aggregate.rounds["technical"].dominant_category == "Joy"
    assert aggregate.rounds["technical"].real_count == 1


def test_timeout_falls_back_to_synthetic_once(
    inference_config: InferenceConfig, make_http_client
) -> None:
    """A job that never completes yields exactly one synthetic expression."""
    client = _client(_service("IN_PROGRESS", []), inference_config, make_http_client)
    key = CaptureKey("technical", "q1", 0)
    store = ExpressionStore()

    async def _run():
        async with AffectPipeline(client=client, store=store) as pipeline:
            return await pipeline.capture(key, _image())

    expression = asyncio.run(_run())

    assert expression.source is ExpressionSource.SYNTHETIC
    assert expression.vector == normalize_vector(synthesize(key))
    assert len(store) == 1 and store.get("q1") is expression


def test_wall_clock_deadline_falls_back_to_synthetic(
    inference_config: InferenceConfig, make_http_client
) -> None:
    """A job still running at the capture deadline is stored once as synthetic."""
    config = replace(inference_config, poll_interval_seconds=0.01, max_poll_attempts=10_000)
    client = InferenceJobClient(
        config, http_client=make_http_client(_service("IN_PROGRESS", []))
    )
    store = ExpressionStore()

    async def _run():
        async with AffectPipeline(client=client, store=store) as pipeline:
            return await pipeline.capture(
                CaptureKey("technical", "q1", 0), _image(), deadline_seconds=0.05
            )

    expression = asyncio.run(_run())

    assert expression.source is ExpressionSource.SYNTHETIC
    assert len(store) == 1 and store.get("q1") is expression


@pytest.mark.parametrize(
    "handler",
    [
        _service("FAILED", []),
        _service("COMPLETED", []),
        lambda request: httpx.Response(500),
    ],
    ids=["job-failed", "no-face", "submit-rejected"],
)
def test_every_failure_mode_yields_synthetic(
    handler, inference_config: InferenceConfig, make_http_client
) -> None:
    """Failures never escape a capture; they become synthetic vectors."""
    client = _client(handler, inference_config, make_http_client)

    async def _run():
        async with AffectPipeline(client=client) as pipeline:
            return await pipeline.capture(CaptureKey("hr", "q7", 2), _image())

    expression = asyncio.run(_run())

    assert expression.source is ExpressionSource.SYNTHETIC
    assert expression.vector


def test_without_client_every_capture_is_synthesized() -> None:
    """Missing credentials short-circuit straight to the synthesizer."""
    image = _image()

    async def _run():
        async with AffectPipeline() as pipeline:
            return await pipeline.capture(CaptureKey("hr", "q1", 0), image)

    expression = asyncio.run(_run())

    assert expression.source is ExpressionSource.SYNTHETIC
    assert image.discarded


def test_duplicate_trigger_is_dropped() -> None:
    """Only the first capture of a question is ever resolved."""

    async def _run():
        async with AffectPipeline() as pipeline:
            first = pipeline.trigger(CaptureKey("hr", "q1", 0), _image())
            second = pipeline.trigger(CaptureKey("hr", "q1", 0), _image())
            await pipeline.drain()
            late = await pipeline.capture(CaptureKey("hr", "q1", 0), _image())
            return first, second, late, pipeline.store

    first, second, late, store = asyncio.run(_run())

    assert first is not None
    assert second is None and late is None
    assert len(store) == 1


def test_foreign_write_surfaces_duplicate_key_error() -> None:
    """A store already holding the question refuses the pipeline's write."""
    store = ExpressionStore()

    async def _run():
        pipeline = AffectPipeline(store=store)
        # Claimed before the foreign write lands in the store.
        task = pipeline.trigger(CaptureKey("hr", "q1", 0), _image())
        store.put(
            QuestionExpression(
                question_id="q1",
                round_id="hr",
                vector=(EmotionScore("Joy", 0.5),),
                source=ExpressionSource.REAL,
                captured_at=datetime(2024, 1, 1, tzinfo=UTC),
            )
        )
        with pytest.raises(DuplicateKeyError):
            await task
        await pipeline.close()

    asyncio.run(_run())

    assert store.get("q1").source is ExpressionSource.REAL


def test_store_order_follows_triggers_not_completion(
    inference_config: InferenceConfig, make_http_client
) -> None:
    """A slow first capture still sorts before a fast second one."""
    config = replace(inference_config, poll_interval_seconds=0.0)
    slow_questions = {"q1"}

    async def _sleep(seconds: float) -> None:
        await asyncio.sleep(0)

    def _handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            question = "q1" if b"q1.jpg" in request.read() else "q2"
            return httpx.Response(200, json={"job_id": question})
        job_id = request.url.path.split("/jobs/")[1].split("/")[0]
        if request.url.path.endswith("/predictions"):
            return httpx.Response(200, json=predictions_payload([{"name": "Joy", "score": 0.8}]))
        if job_id in slow_questions:
            slow_questions.discard(job_id)
            return httpx.Response(200, json={"status": "IN_PROGRESS"})
        return httpx.Response(200, json={"status": "COMPLETED"})

    client = InferenceJobClient(config, http_client=make_http_client(_handler), sleep=_sleep)
    completed: list[str] = []

    async def _run():
        async with AffectPipeline(client=client) as pipeline:
            tasks = [
                pipeline.trigger(
                    CaptureKey("technical", question, index),
                    ImageArtifact(payload=b"jpeg", filename=f"{question}.jpg"),
                )
                for index, question in enumerate(("q1", "q2"))
            ]
            for task in asyncio.as_completed(tasks):
                completed.append((await task).question_id)
            return pipeline.store

    store = asyncio.run(_run())

    assert completed == ["q2", "q1"]
    assert [expr.question_id for expr in store.all()] == ["q1", "q2"]


def test_close_abandons_outstanding_captures() -> None:
    """Session end cancels pending work without writing to the store."""
    release = asyncio.Event()

    class _BlockingClient:
        async def resolve(self, image, *, question_id, deadline_seconds=None):
            await release.wait()
            raise AssertionError("abandoned capture resumed")

    async def _run():
        pipeline = AffectPipeline(client=_BlockingClient())
        task = pipeline.trigger(CaptureKey("hr", "q1", 0), _image())
        await asyncio.sleep(0)
        assert pipeline.outstanding == 1
        await pipeline.close()
        late = pipeline.trigger(CaptureKey("hr", "q2", 1), _image())
        return pipeline, task, late

    pipeline, task, late = asyncio.run(_run())

    assert task.cancelled()
    assert late is None
    assert len(pipeline.store) == 0
    assert pipeline.outstanding == 0


def test_drain_waits_for_all_triggered_captures() -> None:
    """Draining leaves nothing outstanding and every capture stored."""

    async def _run():
        async with AffectPipeline() as pipeline:
            for index in range(4):
                pipeline.trigger(CaptureKey("technical", f"q{index}", index), _image())
            await pipeline.drain()
            return pipeline.outstanding, len(pipeline.store)

    assert asyncio.run(_run()) == (0, 4)


def test_trigger_without_running_loop_keeps_question_open() -> None:
    """A trigger that could not be scheduled must not block a later capture."""
    pipeline = AffectPipeline()
    key = CaptureKey("hr", "q1", 0)

    with pytest.raises(RuntimeError):
        pipeline.trigger(key, _image())

    expression = asyncio.run(pipeline.capture(key, _image()))

    assert expression is not None
    assert len(pipeline.store) == 1
