"""Request pipeline facade used by the HTTP layer."""

import logging
import re
from collections.abc import Mapping

from img_optimizer.services.cache.base import CacheStore
from img_optimizer.services.pipeline.cache_key import derive_key
from img_optimizer.services.pipeline.errors import (
    CacheStorageError,
    ImageNotFoundError,
    InvalidImageUrlError,
)
from img_optimizer.services.pipeline.models import (
    CacheEntry,
    Passthrough,
    PipelineResponse,
)
from img_optimizer.services.pipeline.orchestrator import TransformOrchestrator
from img_optimizer.services.pipeline.single_flight import SingleFlightCoordinator
from img_optimizer.services.pipeline.validator import validate

logger = logging.getLogger(__name__)

IMAGE_ID_PATTERN = re.compile(r"^([a-f0-9]{64})\.(\w+)$")


class ImagePipeline:
    """Validator -> key -> single-flight (cache / orchestrator)."""

    def __init__(
        self,
        store: CacheStore,
        coordinator: SingleFlightCoordinator,
        orchestrator: TransformOrchestrator,
    ):
        self.store = store
        self.coordinator = coordinator
        self.orchestrator = orchestrator

    async def handle(self, raw_params: Mapping[str, str | None]) -> PipelineResponse | Passthrough:
        """
        Serve one image request.

        Validation errors are raised before any I/O. SVG sources become a
        ``Passthrough`` and are never transformed or cached.
        """
        request = validate(raw_params)

        if request.is_svg:
            logger.info(f"SVG source, redirecting: {request.source_url}")
            return Passthrough(location=request.source_url)

        key = derive_key(request)
        result, from_cache = await self.coordinator.execute(
            key, lambda: self.orchestrator.compute(request)
        )

        if isinstance(result, Passthrough):
            return result

        return PipelineResponse(
            key=key,
            data=result.data,
            content_type=result.content_type,
            from_cache=from_cache,
            width=result.width,
            height=result.height,
        )

    async def get_cached(self, image_id: str) -> CacheEntry:
        """Fetch a stored transform by ``<key>.<ext>``."""
        match = IMAGE_ID_PATTERN.match(image_id)
        if not match:
            raise InvalidImageUrlError(image_id)

        try:
            entry = await self.store.lookup(match.group(1))
        except CacheStorageError as e:
            logger.warning(f"Cache lookup failed for {image_id}: {e}")
            raise ImageNotFoundError(image_id) from e

        if entry is None or entry.extension != match.group(2):
            raise ImageNotFoundError(image_id)
        return entry

    async def evict_expired(self) -> int:
        return await self.store.evict_expired()

    async def close(self) -> None:
        await self.coordinator.shutdown()
        await self.store.close()
