"""Image decode, resize and encode.

Features:
- Format detection from the decoded image
- EXIF orientation applied on decode (pixels are then metadata-free)
- Downscale-only, aspect-preserving resize
- JPEG / PNG / WebP encoding with transparency handling
"""

import logging
import warnings
from dataclasses import dataclass
from io import BytesIO
from typing import Protocol

from PIL import ExifTags, Image

from img_optimizer.services.pipeline.errors import (
    DecodeFailedError,
    EncodeFailedError,
    SourceTooLargeError,
)
from img_optimizer.services.pipeline.models import OutputFormat

logger = logging.getLogger(__name__)

_ORIENTATION_TAG = next(tag for tag, name in ExifTags.TAGS.items() if name == "Orientation")

_ORIENTATION_TRANSFORMS = {
    2: Image.Transpose.FLIP_LEFT_RIGHT,
    3: Image.Transpose.ROTATE_180,
    4: Image.Transpose.FLIP_TOP_BOTTOM,
    5: Image.Transpose.TRANSPOSE,
    6: Image.Transpose.ROTATE_270,
    7: Image.Transpose.TRANSVERSE,
    8: Image.Transpose.ROTATE_90,
}


@dataclass
class DecodedImage:
    """A decoded source image."""

    image: Image.Image
    format: str | None
    width: int
    height: int

    @property
    def output_format(self) -> OutputFormat | None:
        """The source format, if it is one the service can emit."""
        if not self.format:
            return None
        return OutputFormat.from_param(self.format)


class Codec(Protocol):
    """Capability interface for pixel work."""

    def decode(self, data: bytes) -> DecodedImage: ...

    def resize(self, decoded: DecodedImage, width: int) -> DecodedImage: ...

    def encode(self, decoded: DecodedImage, format: OutputFormat, quality: int) -> bytes: ...


def scaled_height(width: int, natural_width: int, natural_height: int) -> int:
    return max(1, round(width * natural_height / natural_width))


class PillowCodec:
    """
    Pillow implementation of ``Codec``.

    Methods are blocking; callers run them in a worker pool.
    """

    def __init__(self, max_pixels: int | None = 100_000_000):
        self._max_pixels = max_pixels

    def _apply_orientation(self, image: Image.Image) -> Image.Image:
        try:
            orientation = image.getexif().get(_ORIENTATION_TAG)
        except Exception as e:
            logger.debug(f"EXIF read failed (non-critical): {e}")
            return image
        transform = _ORIENTATION_TRANSFORMS.get(orientation)
        if transform is None:
            return image
        return image.transpose(transform)

    def decode(self, data: bytes) -> DecodedImage:
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("error", Image.DecompressionBombWarning)
                image = Image.open(BytesIO(data))
                width, height = image.size
                if self._max_pixels is not None and width * height > self._max_pixels:
                    raise SourceTooLargeError(
                        reason=f"Image is {width}x{height}, above the "
                        f"{self._max_pixels} pixel limit"
                    )
                source_format = image.format.lower() if image.format else None
                image.load()
        except SourceTooLargeError:
            raise
        except (Image.DecompressionBombError, Image.DecompressionBombWarning) as e:
            raise SourceTooLargeError(reason=str(e)) from e
        except Exception as e:
            raise DecodeFailedError(str(e)) from e

        image = self._apply_orientation(image)
        logger.debug(f"Decoded image: {source_format} {image.width}x{image.height}")
        return DecodedImage(
            image=image,
            format=source_format,
            width=image.width,
            height=image.height,
        )

    def resize(self, decoded: DecodedImage, width: int) -> DecodedImage:
        """Downscale to ``width`` keeping the aspect ratio. Never upscales."""
        if width >= decoded.width:
            return decoded
        height = scaled_height(width, decoded.width, decoded.height)
        image = decoded.image
        if image.mode == "P":
            image = image.convert("RGBA")
        resized = image.resize((width, height), Image.Resampling.LANCZOS)
        logger.debug(f"Resized image {decoded.width}x{decoded.height} -> {width}x{height}")
        return DecodedImage(image=resized, format=decoded.format, width=width, height=height)

    def _flatten(self, image: Image.Image) -> Image.Image:
        """Composite transparency onto white (JPEG has no alpha)."""
        if image.mode == "P":
            image = image.convert("RGBA")
        if image.mode == "LA":
            image = image.convert("RGBA")
        if image.mode == "RGBA":
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            return background
        if image.mode != "RGB":
            return image.convert("RGB")
        return image

    def encode(self, decoded: DecodedImage, format: OutputFormat, quality: int) -> bytes:
        image = decoded.image
        output = BytesIO()
        try:
            if format is OutputFormat.JPEG:
                image = self._flatten(image)
                image.save(output, format="JPEG", quality=quality, optimize=True, progressive=True)
            elif format is OutputFormat.WEBP:
                if image.mode not in ("RGB", "RGBA"):
                    has_alpha = "A" in image.getbands() or "transparency" in image.info
                    image = image.convert("RGBA" if has_alpha else "RGB")
                image.save(output, format="WEBP", quality=quality)
            else:
                # Lossless: quality has no effect
                if image.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"):
                    image = image.convert("RGBA")
                image.save(output, format="PNG", optimize=True)
        except Exception as e:
            raise EncodeFailedError(format.value, str(e)) from e

        encoded = output.getvalue()
        logger.debug(f"Encoded {format.value} q={quality}: {len(encoded) / 1024:.1f}KB")
        return encoded
