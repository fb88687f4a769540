"""Application middleware that resolves the request principal."""
from __future__ import annotations

from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from fleetledger.core.logger import get_logger, log_context
from fleetledger.core.security import AuthenticationError, AuthenticatedUser, SecurityProvider

LOGGER = get_logger(__name__)


class AuthMiddleware(BaseHTTPMiddleware):
    """Decode the access token (cookie or bearer header) into ``request.state.user``.

    Access control itself is left to the route dependencies, so list reads
    can degrade to empty results while mutations return 401/403.
    """

    def __init__(self, app, security_provider: SecurityProvider) -> None:
        super().__init__(app)
        self._security_provider = security_provider

    def _extract_token(self, request: Request) -> tuple[str | None, bool]:
        header = request.headers.get("authorization", "")
        if header.lower().startswith("bearer "):
            return header[7:].strip() or None, False
        return request.cookies.get(self._security_provider.cookie_name), True

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        token, from_cookie = self._extract_token(request)
        user: AuthenticatedUser | None = None
        invalid_cookie = False

        if token:
            try:
                user = self._security_provider.decode_token(token)
            except AuthenticationError as exc:
                LOGGER.info(
                    "Failed to decode access token",
                    extra={"reason": str(exc), "path": request.url.path},
                )
                invalid_cookie = from_cookie

        request.state.user = user
        with log_context.scope(
            method=request.method,
            path=request.url.path,
            user=user.username if user else None,
        ):
            response = await call_next(request)

        if invalid_cookie:
            response.delete_cookie(self._security_provider.cookie_name)
        return response


__all__ = ["AuthMiddleware"]
