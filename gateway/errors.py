from __future__ import annotations

from fastapi.responses import PlainTextResponse

from providers.storage import StorageError


def verbose_error(err: BaseException) -> str:
    """
    Render an error for the log stream.

    Structured backend errors carry every diagnostic field; anything else is
    rendered as its plain message.
    """
    if isinstance(err, StorageError) and err.is_structured:
        return (
            f"{err.message} [code: {err.code}, bucket: {err.bucket}, "
            f"key: {err.key}, http_status: {err.status_code}]"
        )
    return str(err)


def error_response(message: str, status_code: int = 500) -> PlainTextResponse:
    return PlainTextResponse(f"{message}\n", status_code=status_code)
