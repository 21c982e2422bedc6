"""Parameter validation tests."""

import pytest

from img_optimizer.services.pipeline.errors import (
    InvalidImageFormatError,
    InvalidImageUrlError,
    InvalidQualityError,
    InvalidWidthError,
)
from img_optimizer.services.pipeline.models import OutputFormat
from img_optimizer.services.pipeline.validator import validate

SRC = "https://example.com/photo.jpg"


class TestSourceUrl:
    def test_valid_https_url(self):
        request = validate({"src": SRC})
        assert request.source_url == SRC
        assert request.width is None
        assert request.quality == 75
        assert request.format is None

    def test_http_url_accepted(self):
        assert validate({"src": "http://example.com/a.png"}).source_url == "http://example.com/a.png"

    @pytest.mark.parametrize("params", [{}, {"src": None}, {"src": ""}, {"src": "   "}])
    def test_missing_src(self, params):
        with pytest.raises(InvalidImageUrlError) as exc_info:
            validate(params)
        assert exc_info.value.code == "IMG_001"
        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize(
        "src",
        [
            "not-a-url",
            "/relative/path.jpg",
            "ftp://example.com/a.jpg",
            "file:///etc/passwd",
            "https://",
            "https://exa mple.com/a.jpg",
        ],
    )
    def test_malformed_src(self, src):
        with pytest.raises(InvalidImageUrlError):
            validate({"src": src})


class TestWidth:
    @pytest.mark.parametrize("raw, expected", [("1", 1), ("800", 800), ("3840", 3840)])
    def test_accepted(self, raw, expected):
        assert validate({"src": SRC, "w": raw}).width == expected

    @pytest.mark.parametrize("raw", ["0", "3841", "-5", "abc", "12.5", "1e3", "+5"])
    def test_rejected_with_value_echoed(self, raw):
        with pytest.raises(InvalidWidthError) as exc_info:
            validate({"src": SRC, "w": raw})
        assert exc_info.value.code == "VAL_001"
        assert raw in exc_info.value.detail

    def test_empty_width_is_absent(self):
        assert validate({"src": SRC, "w": ""}).width is None


class TestQuality:
    @pytest.mark.parametrize("raw, expected", [("1", 1), ("90", 90), ("100", 100)])
    def test_accepted(self, raw, expected):
        assert validate({"src": SRC, "q": raw}).quality == expected

    @pytest.mark.parametrize("raw", ["0", "101", "high", "-1"])
    def test_rejected(self, raw):
        with pytest.raises(InvalidQualityError) as exc_info:
            validate({"src": SRC, "q": raw})
        assert exc_info.value.code == "VAL_002"

    def test_default(self):
        assert validate({"src": SRC, "q": None}).quality == 75


class TestFormat:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("jpeg", OutputFormat.JPEG),
            ("jpg", OutputFormat.JPEG),
            ("JPG", OutputFormat.JPEG),
            ("png", OutputFormat.PNG),
            ("WebP", OutputFormat.WEBP),
        ],
    )
    def test_accepted(self, raw, expected):
        assert validate({"src": SRC, "f": raw}).format is expected

    @pytest.mark.parametrize("raw", ["gif", "avif", "svg", "jpeg2000"])
    def test_rejected(self, raw):
        with pytest.raises(InvalidImageFormatError) as exc_info:
            validate({"src": SRC, "f": raw})
        assert exc_info.value.code == "IMG_004"
        assert raw in exc_info.value.how_to_fix


def test_first_failure_wins():
    with pytest.raises(InvalidImageUrlError):
        validate({"src": "nope", "w": "0", "q": "0", "f": "gif"})
    with pytest.raises(InvalidWidthError):
        validate({"src": SRC, "w": "0", "q": "0", "f": "gif"})
    with pytest.raises(InvalidQualityError):
        validate({"src": SRC, "w": "10", "q": "0", "f": "gif"})


@pytest.mark.parametrize(
    "src, is_svg",
    [
        ("https://example.com/logo.svg", True),
        ("https://example.com/LOGO.SVG?v=2", True),
        ("https://example.com/logo.svg.png", False),
        ("https://example.com/photo.jpg", False),
    ],
)
def test_svg_detection_by_extension(src, is_svg):
    assert validate({"src": src}).is_svg is is_svg
