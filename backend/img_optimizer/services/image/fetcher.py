"""Source image download over HTTP."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from img_optimizer.services.pipeline.errors import (
    FetchFailedError,
    FetchTimeoutError,
    SourceTooLargeError,
)

logger = logging.getLogger(__name__)

SVG_CONTENT_TYPE = "image/svg+xml"


@dataclass(frozen=True)
class FetchLimits:
    """Per-request bounds on a source download."""

    max_bytes: int
    timeout: float


@dataclass(frozen=True)
class FetchedSource:
    """Downloaded source bytes plus the server's content-type signal."""

    data: bytes
    content_type: str | None = None

    @property
    def is_svg(self) -> bool:
        if self.content_type == SVG_CONTENT_TYPE:
            return True
        head = self.data[:512].lstrip().lower()
        if head.startswith(b"<svg"):
            return True
        return head.startswith(b"<?xml") and b"<svg" in head


class Fetcher(Protocol):
    """Capability interface for retrieving source bytes."""

    async def fetch(self, url: str, limits: FetchLimits) -> FetchedSource: ...


def _media_type(header: str | None) -> str | None:
    if not header:
        return None
    return header.split(";", 1)[0].strip().lower() or None


class HttpxFetcher:
    """
    Streams sources with httpx, enforcing a byte ceiling and a deadline.

    The deadline covers the whole download (connect, headers and body), not
    just individual socket operations.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        user_agent: str = "Plasmic-Image-Optimizer/1.0",
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={
                "User-Agent": user_agent,
                "Accept": "image/avif,image/webp,image/png,image/svg+xml,image/*;q=0.8,*/*;q=0.5",
            },
        )

    async def fetch(self, url: str, limits: FetchLimits) -> FetchedSource:
        logger.info(f"Fetching source image: {url}")
        try:
            return await asyncio.wait_for(self._download(url, limits), limits.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"Timeout fetching image: {url}")
            raise FetchTimeoutError(url, limits.timeout) from None
        except httpx.HTTPError as e:
            logger.warning(f"Error fetching image {url}: {e}")
            raise FetchFailedError(url, reason=str(e)) from e

    async def _download(self, url: str, limits: FetchLimits) -> FetchedSource:
        async with self._client.stream("GET", url, timeout=limits.timeout) as response:
            if not response.is_success:
                logger.warning(f"Upstream returned HTTP {response.status_code} for {url}")
                raise FetchFailedError(url, upstream_status=response.status_code)

            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > limits.max_bytes:
                raise SourceTooLargeError(limits.max_bytes)

            chunks = bytearray()
            async for chunk in response.aiter_bytes():
                chunks.extend(chunk)
                if len(chunks) > limits.max_bytes:
                    raise SourceTooLargeError(limits.max_bytes)

            if not chunks:
                raise FetchFailedError(url, reason="empty response body")

            return FetchedSource(
                data=bytes(chunks),
                content_type=_media_type(response.headers.get("content-type")),
            )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
