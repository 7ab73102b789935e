import contextlib
import io
import logging
import sys
from collections.abc import Callable, Generator, Sequence
from pathlib import Path

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import affect.__main__ as affect_main
import affect.config as config
from affect.config import InferenceConfig

type Handler = Callable[[httpx.Request], httpx.Response]

BASE_URL = "https://inference.test/v0/batch"


def predictions_payload(emotions: list[dict[str, object]]) -> list[dict[str, object]]:
    """Builds a well-formed predictions body holding one face."""
    return [
        {
            "source": {"type": "file", "filename": "capture.jpg"},
            "results": {
                "predictions": [
                    {
                        "file": "capture.jpg",
                        "models": {
                            "face": {
                                "grouped_predictions": [
                                    {"id": "unknown", "predictions": [{"emotions": emotions}]}
                                ]
                            }
                        },
                    }
                ],
                "errors": [],
            },
        }
    ]


async def no_sleep(_seconds: float) -> None:
    """Sleep replacement that returns immediately."""


@pytest.fixture
def inference_config() -> InferenceConfig:
    """Inference settings with every pause removed."""
    return InferenceConfig(
        api_key="test-key",
        base_url=BASE_URL,
        poll_interval_seconds=0.0,
        max_poll_attempts=5,
        deadline_seconds=5.0,
        result_settle_seconds=0.0,
        fetch_max_attempts=3,
        fetch_retry_pause_seconds=0.0,
    )


@pytest.fixture
def make_http_client() -> Callable[[Handler], httpx.AsyncClient]:
    """Returns a factory for async clients backed by a request handler."""

    def _make(handler: Handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keeps global settings stable across tests."""
    monkeypatch.delenv("AFFECT_API_KEY", raising=False)
    config.reload_settings()
    yield
    config._SETTINGS = None


@pytest.fixture(autouse=True)
def _silence_halo(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace Halo spinners with a no-op context manager for tests."""

    class _DummyHalo:
        def __init__(self, *args, **kwargs):
            self.text = kwargs.get("text")

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

    monkeypatch.setattr("affect.__main__.Halo", _DummyHalo, raising=False)
    monkeypatch.setattr("affect.report.output.Halo", _DummyHalo, raising=False)


@pytest.fixture
def run_cli(monkeypatch: pytest.MonkeyPatch):
    """Run the affect CLI with a custom argv list."""
    monkeypatch.setattr(affect_main, "load_dotenv", lambda: None)

    def _run_cli(args: Sequence[str]) -> tuple[int, str]:
        monkeypatch.setattr(sys, "argv", ["affect", *args])
        stdout = io.StringIO()
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stdout):
            try:
                affect_main.main()
            except SystemExit as exc:
                return int(exc.code or 0), stdout.getvalue()
        return 0, stdout.getvalue()

    return _run_cli


@pytest.fixture
def caplog_info(caplog):
    caplog.set_level(logging.INFO)
    return caplog
