"""Error taxonomy tests."""

import pytest

from img_optimizer.services.pipeline.errors import (
    ERROR_CATALOG,
    CacheStorageError,
    DecodeFailedError,
    FetchFailedError,
    FetchTimeoutError,
    ImageNotFoundError,
    InvalidImageFormatError,
    InvalidImageUrlError,
    ServiceUnavailableError,
    SourceTooLargeError,
    TransformTimeoutError,
    classify,
    list_all_errors,
)

BASE = "https://docs.example.com/img"


class TestCatalog:
    def test_codes_are_unique(self):
        codes = [cls.code for cls in ERROR_CATALOG]
        assert len(codes) == len(set(codes))

    def test_list_all_errors_format(self):
        errors = list_all_errors()
        assert len(errors) == len(ERROR_CATALOG)
        assert "IMG_001: Invalid image URL - The provided URL is not valid" in errors
        assert "VAL_001: Invalid width - Width must be between 1 and 3840" in errors
        assert "SYS_001: Internal server error - An unexpected error occurred" in errors
        assert "SYS_002: Service unavailable - The service is temporarily unavailable" in errors

    def test_default_detail_uses_description(self):
        assert ServiceUnavailableError().detail == (
            "SYS_002: Service unavailable - The service is temporarily unavailable"
        )

    @pytest.mark.parametrize(
        "exc, code, status",
        [
            (InvalidImageUrlError(), "IMG_001", 400),
            (FetchFailedError("https://x/a.jpg", upstream_status=404), "IMG_002", 502),
            (DecodeFailedError("bad header"), "IMG_003", 422),
            (InvalidImageFormatError("gif"), "IMG_004", 400),
            (SourceTooLargeError(1024), "IMG_005", 413),
            (FetchTimeoutError("https://x/a.jpg", 5), "IMG_006", 504),
            (TransformTimeoutError(60), "IMG_008", 504),
            (ImageNotFoundError("abc.jpg"), "IMG_009", 404),
            (CacheStorageError("disk full"), "CACHE_001", 500),
        ],
    )
    def test_code_and_status(self, exc, code, status):
        assert exc.code == code
        assert exc.status_code == status


class TestClassify:
    def test_problem_fields(self):
        problem = classify(InvalidImageFormatError("gif"), BASE + "/")
        assert problem.type == f"{BASE}/errors/IMG_004"
        assert problem.title == "Bad Request"
        assert problem.status == 400
        assert problem.detail == "IMG_004: Invalid image format - Format 'gif' is not supported"
        assert problem.error_code == "IMG_004"
        assert "gif" in problem.how_to_fix
        assert problem.more_info == f"{BASE}#error-img_004"

    def test_wire_names(self):
        body = classify(InvalidImageUrlError(), BASE).to_dict()
        assert set(body) == {
            "type",
            "title",
            "status",
            "detail",
            "errorCode",
            "howToFix",
            "moreInfo",
        }

    def test_upstream_status_in_detail(self):
        problem = classify(FetchFailedError("https://x/a.jpg", upstream_status=404), BASE)
        assert "HTTP 404" in problem.detail

    def test_unclassified_exception_hides_message(self):
        problem = classify(RuntimeError("secret path /etc/shadow"), BASE)
        assert problem.error_code == "SYS_001"
        assert problem.status == 500
        assert "secret" not in problem.detail
