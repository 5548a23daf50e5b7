from __future__ import annotations

import hmac
from dataclasses import dataclass

from starlette.requests import Request

from .commands import TOKEN_QUERY_PARAM


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    source: str | None = None
    reason: str | None = None
    status_code: int = 401


class TokenAuthAdapter:
    """Shared-secret bearer auth: `Authorization: Bearer <token>` or `?_token=<token>`."""

    def __init__(self, *, token: str) -> None:
        if not token:
            raise ValueError("auth token must not be empty")
        self._token = token.encode("utf-8")

    def authenticate(self, request: Request) -> AuthResult:
        source = "header"
        presented = _extract_bearer_token(request)
        if presented is None:
            source = "query"
            presented = request.query_params.get(TOKEN_QUERY_PARAM)
        if not presented:
            return AuthResult(ok=False, reason="missing_token")
        if not hmac.compare_digest(presented.encode("utf-8"), self._token):
            return AuthResult(ok=False, source=source, reason="invalid_token")
        return AuthResult(ok=True, source=source, status_code=200)


def _extract_bearer_token(request: Request) -> str | None:
    authz = request.headers.get("authorization") or ""
    if not authz.lower().startswith("bearer "):
        return None
    token = authz.split(" ", 1)[1].strip()
    return token if token else None
