"""Request parameter parsing and bounds checking."""

import re
from collections.abc import Mapping

from pydantic import HttpUrl, TypeAdapter, ValidationError

from img_optimizer.services.pipeline.errors import (
    InvalidImageFormatError,
    InvalidImageUrlError,
    InvalidQualityError,
    InvalidWidthError,
)
from img_optimizer.services.pipeline.models import (
    DEFAULT_QUALITY,
    MAX_QUALITY,
    MAX_WIDTH,
    MIN_QUALITY,
    OutputFormat,
    TransformRequest,
)

_URL_ADAPTER = TypeAdapter(HttpUrl)
_DIGITS = re.compile(r"[0-9]+")


def _present(value: str | None) -> str | None:
    """Treat empty query values (``w=``) as absent."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_bounded(value: str, low: int, high: int) -> int | None:
    if not _DIGITS.fullmatch(value):
        return None
    number = int(value)
    if number < low or number > high:
        return None
    return number


def validate_source_url(src: str | None) -> str:
    """Return ``src`` if it is an absolute http(s) URL."""
    src = _present(src)
    if src is None:
        raise InvalidImageUrlError()
    if any(ch.isspace() for ch in src):
        raise InvalidImageUrlError(src)
    try:
        url = _URL_ADAPTER.validate_python(src)
    except ValidationError:
        raise InvalidImageUrlError(src) from None
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidImageUrlError(src)
    return src


def validate(raw_params: Mapping[str, str | None]) -> TransformRequest:
    """
    Parse raw query parameters into a ``TransformRequest``.

    Checks run in the order src, w, q, f and the first failure wins.

    Raises:
        InvalidImageUrlError, InvalidWidthError, InvalidQualityError,
        InvalidImageFormatError
    """
    source_url = validate_source_url(raw_params.get("src"))

    width = None
    raw_width = _present(raw_params.get("w"))
    if raw_width is not None:
        width = _parse_bounded(raw_width, 1, MAX_WIDTH)
        if width is None:
            raise InvalidWidthError(raw_width)

    quality = DEFAULT_QUALITY
    raw_quality = _present(raw_params.get("q"))
    if raw_quality is not None:
        parsed = _parse_bounded(raw_quality, MIN_QUALITY, MAX_QUALITY)
        if parsed is None:
            raise InvalidQualityError(raw_quality)
        quality = parsed

    output_format = None
    raw_format = _present(raw_params.get("f"))
    if raw_format is not None:
        output_format = OutputFormat.from_param(raw_format)
        if output_format is None:
            raise InvalidImageFormatError(raw_format)

    return TransformRequest(
        source_url=source_url,
        width=width,
        quality=quality,
        format=output_format,
    )
