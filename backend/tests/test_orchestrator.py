"""Transform orchestrator and codec tests using real Pillow encoding."""

from concurrent.futures import ThreadPoolExecutor
from io import BytesIO

import pytest
from PIL import Image

from img_optimizer.services.image import FetchedSource, PillowCodec
from img_optimizer.services.pipeline.errors import DecodeFailedError, SourceTooLargeError
from img_optimizer.services.pipeline.models import OutputFormat, Passthrough, TransformRequest
from img_optimizer.services.pipeline.orchestrator import TransformOrchestrator

from conftest import FakeFetcher, make_image, open_image

SRC = "https://example.com/photo"


def orchestrator_for(source: FetchedSource, limits, codec=None, executor=None):
    fetcher = FakeFetcher(default=source)
    return TransformOrchestrator(
        fetcher=fetcher,
        codec=codec or PillowCodec(),
        limits=limits,
        executor=executor,
    ), fetcher


class TestCompute:
    @pytest.mark.asyncio
    async def test_resize_and_convert_to_webp(self, jpeg_source, limits):
        orchestrator, fetcher = orchestrator_for(jpeg_source, limits)
        request = TransformRequest(source_url=SRC, width=800, quality=80, format=OutputFormat.WEBP)

        result = await orchestrator.compute(request)

        assert result.content_type == "image/webp"
        image = open_image(result.data)
        assert image.format == "WEBP"
        assert image.size == (800, 533)
        assert (result.width, result.height) == (800, 533)
        assert fetcher.calls == [(SRC, limits)]

    @pytest.mark.asyncio
    async def test_never_upscales(self, limits):
        source = FetchedSource(data=make_image("PNG", (300, 200)), content_type="image/png")
        orchestrator, _ = orchestrator_for(source, limits)

        result = await orchestrator.compute(TransformRequest(source_url=SRC, width=1000))

        assert open_image(result.data).size == (300, 200)

    @pytest.mark.asyncio
    async def test_keeps_source_format_when_unspecified(self, limits):
        source = FetchedSource(data=make_image("PNG", (64, 64)), content_type="image/png")
        orchestrator, _ = orchestrator_for(source, limits)

        result = await orchestrator.compute(TransformRequest(source_url=SRC))

        assert result.content_type == "image/png"
        assert open_image(result.data).format == "PNG"

    @pytest.mark.asyncio
    async def test_unsupported_source_format_falls_back_to_jpeg(self, limits):
        source = FetchedSource(data=make_image("GIF", (64, 64), mode="P", color=3))
        orchestrator, _ = orchestrator_for(source, limits)

        result = await orchestrator.compute(TransformRequest(source_url=SRC))

        assert result.content_type == "image/jpeg"
        assert open_image(result.data).format == "JPEG"

    @pytest.mark.asyncio
    async def test_transparent_png_to_jpeg_is_flattened(self, limits):
        source = FetchedSource(data=make_image("PNG", (40, 40), mode="RGBA"), content_type="image/png")
        orchestrator, _ = orchestrator_for(source, limits)

        result = await orchestrator.compute(
            TransformRequest(source_url=SRC, format=OutputFormat.JPEG)
        )

        assert open_image(result.data).mode == "RGB"

    @pytest.mark.asyncio
    async def test_lower_quality_gives_smaller_output(self, limits):
        noisy = Image.effect_noise((400, 300), 80).convert("RGB")
        buffer = BytesIO()
        noisy.save(buffer, format="PNG")
        source = FetchedSource(data=buffer.getvalue(), content_type="image/png")
        orchestrator, _ = orchestrator_for(source, limits)

        low = await orchestrator.compute(
            TransformRequest(source_url=SRC, quality=10, format=OutputFormat.JPEG)
        )
        high = await orchestrator.compute(
            TransformRequest(source_url=SRC, quality=95, format=OutputFormat.JPEG)
        )

        assert len(low.data) < len(high.data)

    @pytest.mark.asyncio
    async def test_svg_source_passes_through(self, limits):
        svg = b'<?xml version="1.0"?>\n<svg xmlns="http://www.w3.org/2000/svg"></svg>'
        orchestrator, _ = orchestrator_for(FetchedSource(data=svg, content_type="text/xml"), limits)

        result = await orchestrator.compute(TransformRequest(source_url=SRC))

        assert result == Passthrough(location=SRC)

    @pytest.mark.asyncio
    async def test_undecodable_source(self, limits):
        source = FetchedSource(data=b"definitely not an image", content_type="image/jpeg")
        orchestrator, _ = orchestrator_for(source, limits)

        with pytest.raises(DecodeFailedError) as exc_info:
            await orchestrator.compute(TransformRequest(source_url=SRC))
        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_runs_on_supplied_executor(self, jpeg_source, limits):
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="test-transform") as executor:
            orchestrator, _ = orchestrator_for(jpeg_source, limits, executor=executor)
            result = await orchestrator.compute(TransformRequest(source_url=SRC, width=100))

        assert open_image(result.data).width == 100


class TestResolveFormat:
    @pytest.mark.parametrize(
        "requested, source, expected",
        [
            (OutputFormat.WEBP, OutputFormat.PNG, OutputFormat.WEBP),
            (None, OutputFormat.PNG, OutputFormat.PNG),
            (None, None, OutputFormat.JPEG),
        ],
    )
    def test_precedence(self, requested, source, expected):
        assert TransformOrchestrator.resolve_format(requested, source) is expected


class TestPillowCodec:
    def test_pixel_limit(self):
        codec = PillowCodec(max_pixels=100)
        with pytest.raises(SourceTooLargeError) as exc_info:
            codec.decode(make_image("PNG", (20, 20)))
        assert exc_info.value.status_code == 413

    def test_exif_orientation_applied(self):
        image = Image.new("RGB", (60, 30), (10, 20, 30))
        exif = Image.Exif()
        exif[0x0112] = 6
        buffer = BytesIO()
        image.save(buffer, format="JPEG", exif=exif.tobytes())

        decoded = PillowCodec().decode(buffer.getvalue())
        assert (decoded.width, decoded.height) == (30, 60)

    def test_resize_preserves_aspect_ratio(self):
        codec = PillowCodec()
        decoded = codec.decode(make_image("JPEG", (1000, 250)))
        resized = codec.resize(decoded, 400)
        assert (resized.width, resized.height) == (400, 100)

    def test_png_ignores_quality(self):
        codec = PillowCodec()
        decoded = codec.decode(make_image("PNG", (50, 50)))
        assert codec.encode(decoded, OutputFormat.PNG, 1) == codec.encode(
            decoded, OutputFormat.PNG, 100
        )
