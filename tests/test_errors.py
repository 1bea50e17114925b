from gateway.errors import error_response, verbose_error
from providers.storage import StorageError


def test_structured_error_renders_every_field():
    err = StorageError(
        "The specified key does not exist.",
        code="NoSuchKey",
        bucket="mybucket",
        key="missing.txt",
        status_code=404,
    )

    assert verbose_error(err) == (
        "The specified key does not exist. "
        "[code: NoSuchKey, bucket: mybucket, key: missing.txt, http_status: 404]"
    )


def test_unstructured_storage_error_is_plain():
    assert verbose_error(StorageError("connection refused")) == "connection refused"


def test_foreign_exceptions_are_plain():
    assert verbose_error(ValueError("bad things")) == "bad things"


def test_not_found_codes():
    assert StorageError("x", code="NoSuchKey").is_not_found
    assert StorageError("x", code="NoSuchBucket").is_not_found
    assert not StorageError("x", code="AccessDenied").is_not_found
    assert not StorageError("x").is_not_found


def test_error_response_is_plain_text_with_newline():
    resp = error_response("Error putting object")

    assert resp.status_code == 500
    assert resp.body == b"Error putting object\n"
    assert resp.media_type == "text/plain"
