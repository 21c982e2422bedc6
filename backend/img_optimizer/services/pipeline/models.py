"""Value types flowing through the request pipeline."""

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

MAX_WIDTH = 3840
MIN_QUALITY = 1
MAX_QUALITY = 100
DEFAULT_QUALITY = 75


class OutputFormat(str, Enum):
    """Encodings the service can produce."""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"

    @property
    def extension(self) -> str:
        return "jpg" if self is OutputFormat.JPEG else self.value

    @property
    def is_lossy(self) -> bool:
        return self is not OutputFormat.PNG

    @classmethod
    def from_param(cls, value: str) -> "OutputFormat | None":
        """Parse a user-supplied format name (case-insensitive, jpg alias)."""
        value = value.strip().lower()
        if value == "jpg":
            value = "jpeg"
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def from_content_type(cls, content_type: str) -> "OutputFormat | None":
        for fmt in cls:
            if fmt.content_type == content_type:
                return fmt
        return None


@dataclass(frozen=True)
class TransformRequest:
    """A validated, bounded transform request."""

    source_url: str
    width: int | None = None
    quality: int = DEFAULT_QUALITY
    format: OutputFormat | None = None

    @property
    def is_svg(self) -> bool:
        return urlsplit(self.source_url).path.lower().endswith(".svg")


@dataclass(frozen=True)
class CacheEntry:
    """An immutable cached transform."""

    key: str
    data: bytes
    content_type: str
    created_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    @property
    def extension(self) -> str:
        fmt = OutputFormat.from_content_type(self.content_type)
        return fmt.extension if fmt else "bin"


@dataclass(frozen=True)
class TransformResult:
    """Encoded output of a successful transform."""

    data: bytes
    content_type: str
    width: int | None = None
    height: int | None = None

    cacheable = True

    @classmethod
    def from_entry(cls, entry: CacheEntry) -> "TransformResult":
        return cls(data=entry.data, content_type=entry.content_type)


@dataclass(frozen=True)
class Passthrough:
    """Instruction to redirect the caller to the untouched source."""

    location: str

    cacheable = False


@dataclass(frozen=True)
class PipelineResponse:
    """What the HTTP layer needs to answer an image request."""

    key: str
    data: bytes
    content_type: str
    from_cache: bool
    width: int | None = None
    height: int | None = None

    @property
    def cache_status(self) -> str:
        return "HIT" if self.from_cache else "MISS"

    @property
    def image_id(self) -> str:
        fmt = OutputFormat.from_content_type(self.content_type)
        return f"{self.key}.{fmt.extension if fmt else 'bin'}"
