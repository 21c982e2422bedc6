"""
Shared fixtures for the image optimizer tests.

Test doubles for the Fetcher capability, a controllable clock, and small
in-memory images generated with Pillow so no network or fixture files are
needed.
"""

import asyncio
from io import BytesIO

import pytest
from PIL import Image

from img_optimizer.services.cache import MemoryCacheStore
from img_optimizer.services.image import FetchedSource, FetchLimits, PillowCodec
from img_optimizer.services.pipeline.orchestrator import TransformOrchestrator
from img_optimizer.services.pipeline.service import ImagePipeline
from img_optimizer.services.pipeline.single_flight import SingleFlightCoordinator


def make_image(
    format: str = "JPEG",
    size: tuple[int, int] = (1200, 800),
    mode: str = "RGB",
    color=(200, 30, 30),
) -> bytes:
    """Encode a solid-colour image."""
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 128)
    image = Image.new(mode, size, color)
    output = BytesIO()
    image.save(output, format=format)
    return output.getvalue()


def open_image(data: bytes) -> Image.Image:
    image = Image.open(BytesIO(data))
    image.load()
    return image


class ManualClock:
    """Clock whose time only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    """
    Fetcher double.

    Serves ``sources`` by URL, raises ``error`` if set, and can hold every
    fetch on ``gate`` so tests can pile up concurrent callers.
    """

    def __init__(self, sources: dict[str, FetchedSource] | None = None, default: FetchedSource | None = None):
        self.sources = sources or {}
        self.default = default
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[str, FetchLimits]] = []

    async def fetch(self, url: str, limits: FetchLimits) -> FetchedSource:
        self.calls.append((url, limits))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        source = self.sources.get(url, self.default)
        if source is None:
            raise AssertionError(f"unexpected fetch: {url}")
        return source


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def jpeg_source() -> FetchedSource:
    return FetchedSource(data=make_image("JPEG", (1200, 800)), content_type="image/jpeg")


@pytest.fixture
def fetcher(jpeg_source) -> FakeFetcher:
    return FakeFetcher(default=jpeg_source)


@pytest.fixture
def limits() -> FetchLimits:
    return FetchLimits(max_bytes=10 * 1024 * 1024, timeout=5.0)


@pytest.fixture
def memory_store(clock) -> MemoryCacheStore:
    return MemoryCacheStore(ttl_seconds=60, clock=clock)


@pytest.fixture
def pipeline(memory_store, fetcher, limits) -> ImagePipeline:
    orchestrator = TransformOrchestrator(fetcher=fetcher, codec=PillowCodec(), limits=limits)
    coordinator = SingleFlightCoordinator(memory_store, compute_timeout=10.0)
    return ImagePipeline(store=memory_store, coordinator=coordinator, orchestrator=orchestrator)
