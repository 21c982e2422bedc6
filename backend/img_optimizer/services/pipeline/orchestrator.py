"""Fetch -> decode -> resize -> encode for one transform request."""

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import Executor
from typing import TypeVar

from img_optimizer.services.image.codec import Codec
from img_optimizer.services.image.fetcher import Fetcher, FetchLimits
from img_optimizer.services.pipeline.models import (
    OutputFormat,
    Passthrough,
    TransformRequest,
    TransformResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FALLBACK_FORMAT = OutputFormat.JPEG


class TransformOrchestrator:
    """
    Decides the codec parameters for a request and drives the capabilities.

    Only invoked through the single-flight coordinator; it never touches the
    cache itself. Codec work runs on ``executor`` (the default thread pool
    when None) so CPU-bound encoding never blocks the event loop.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        codec: Codec,
        limits: FetchLimits,
        executor: Executor | None = None,
    ):
        self._fetcher = fetcher
        self._codec = codec
        self._limits = limits
        self._executor = executor

    async def _offload(self, fn: Callable[..., T], *args) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    @staticmethod
    def resolve_format(requested: OutputFormat | None, source: OutputFormat | None) -> OutputFormat:
        """Explicit format wins, then the source format, then JPEG."""
        return requested or source or FALLBACK_FORMAT

    async def compute(self, request: TransformRequest) -> TransformResult | Passthrough:
        source = await self._fetcher.fetch(request.source_url, self._limits)

        if source.is_svg:
            logger.info(f"SVG source detected, passing through: {request.source_url}")
            return Passthrough(location=request.source_url)

        decoded = await self._offload(self._codec.decode, source.data)

        if request.width is not None and request.width < decoded.width:
            decoded = await self._offload(self._codec.resize, decoded, request.width)

        output_format = self.resolve_format(request.format, decoded.output_format)
        data = await self._offload(self._codec.encode, decoded, output_format, request.quality)

        logger.info(
            f"Transformed {request.source_url}: {decoded.width}x{decoded.height} "
            f"{output_format.value} ({len(source.data)} -> {len(data)} bytes)"
        )
        return TransformResult(
            data=data,
            content_type=output_format.content_type,
            width=decoded.width,
            height=decoded.height,
        )
