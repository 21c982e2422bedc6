"""Deterministic cache keys for transform requests."""

import hashlib
from urllib.parse import urlsplit, urlunsplit

from img_optimizer.services.pipeline.models import TransformRequest

ORIGINAL_WIDTH = "original"
AUTO_FORMAT = "auto"

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Lower-case scheme and host, drop default ports; keep path and query."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if parts.port is not None and parts.port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{parts.port}"
    if parts.username or parts.password:
        userinfo = parts.username or ""
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        host = f"{userinfo}@{host}"
    return urlunsplit((scheme, host, parts.path or "/", parts.query, ""))


def canonical_form(request: TransformRequest) -> str:
    fields = {
        "format": request.format.value if request.format else AUTO_FORMAT,
        "quality": str(request.quality),
        "src": normalize_url(request.source_url),
        "width": str(request.width) if request.width is not None else ORIGINAL_WIDTH,
    }
    return "\n".join(f"{name}={fields[name]}" for name in sorted(fields))


def derive_key(request: TransformRequest) -> str:
    """SHA-256 hex digest of the canonical request."""
    return hashlib.sha256(canonical_form(request).encode("utf-8")).hexdigest()
