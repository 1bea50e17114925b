from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

USER_HEADER = "X-User"
EMAIL_HEADER = "X-Email"


@dataclass(frozen=True)
class RequestIdentity:
    """
    Caller identity as claimed by upstream headers.

    UNAUTHENTICATED: nothing verifies these values. They annotate log lines and
    must never be used for access decisions.
    """
    user: str = ""
    email: str = ""


def identity_from_request(request: Request) -> RequestIdentity:
    return RequestIdentity(
        user=request.headers.get(USER_HEADER, ""),
        email=request.headers.get(EMAIL_HEADER, ""),
    )
