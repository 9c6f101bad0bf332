# Test fixtures and configuration
import asyncio
import sys
from pathlib import Path

import pytest
from jose import jwt

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from closet_tryon.config import AuthConfig, FalConfig, PipelineConfig, Settings
from closet_tryon.models import GarmentRef, progress_event_adapter


BASE_IMAGE = "https://res.cloudinary.com/demo/image/upload/person.jpg"


class FakeTryOnClient:
    """Stands in for FalTryOnClient.

    ``outcomes`` holds one entry per model call: a URL, None (model returned
    no image) or an exception to raise. ``logs`` batches are reported before
    the model answers, which takes ``delay`` seconds.
    """

    def __init__(self, outcomes, logs=None, delay=0.0):
        self.outcomes = list(outcomes)
        self.logs = logs or []
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.cancelled = False
        self.closed = False
        self.is_configured = True

    async def try_on(self, human_image_url, garment_image_url, on_logs=None):
        self.calls.append((human_image_url, garment_image_url))
        outcome = self.outcomes.pop(0)
        try:
            if on_logs is not None:
                for batch in self.logs:
                    await on_logs(batch)
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True


class HangingTryOnClient(FakeTryOnClient):
    """A model that never answers."""

    def __init__(self):
        super().__init__([])

    async def try_on(self, human_image_url, garment_image_url, on_logs=None):
        self.calls.append((human_image_url, garment_image_url))
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise


@pytest.fixture
def settings(tmp_path):
    return Settings(
        fal=FalConfig(key="test-fal-key", poll_interval=0.0),
        pipeline=PipelineConfig(step_timeout=5.0),
        auth=AuthConfig(secret="test-secret"),
        credits={"ledger_path": tmp_path / "credits.json"},
    )


@pytest.fixture
def garments():
    """Three garments in the order the closet page sends them."""
    return [
        GarmentRef(category="Tops", image_url="https://x/top.jpg"),
        GarmentRef(category="Bottoms", image_url="https://x/bottom.jpg"),
        GarmentRef(category="Outerwear", image_url="https://x/coat.jpg"),
    ]


@pytest.fixture
def recorder():
    """Event sink that keeps every emitted event."""

    class Recorder:
        def __init__(self):
            self.events = []

        async def __call__(self, event):
            self.events.append(event)

        @property
        def types(self):
            return [e.type for e in self.events]

        def of_type(self, kind):
            return [e for e in self.events if e.type == kind]

    return Recorder()


def parse_lines(text: str):
    """Parse an NDJSON body into event models."""
    return [progress_event_adapter.validate_json(line) for line in text.splitlines() if line]


def make_session_token(user_id: str, config: AuthConfig, **claims) -> str:
    """Issue a token the way the identity provider's session library does."""
    return jwt.encode({"sub": user_id, **claims}, config.secret, algorithm=config.algorithm)
