"""Request-scoped middleware: request IDs and caller identity."""

from typing import Callable
from uuid import UUID, uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from utils.caller_context import set_current_caller_id, clear_current_caller_id


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class CallerIdentityMiddleware(BaseHTTPMiddleware):
    """
    Resolve the bearer token to a caller ID and set the caller context.

    Token verification belongs to the identity provider; this middleware
    only calls the injected resolver, which returns the caller's UUID or
    None for an unknown token. Public paths bypass the check.
    """

    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, resolve_caller: Callable[[str], UUID | None]):
        super().__init__(app)
        self._resolve_caller = resolve_caller

    def _is_public_path(self, path: str) -> bool:
        return any(path == public or path.startswith(public + "/") for public in self.PUBLIC_PATHS)

    def _unauthenticated(self, request: Request) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content=error_response(
                ErrorCodes.NOT_AUTHENTICATED,
                "Authentication required",
                getattr(request.state, "request_id", None),
            ).model_dump(mode="json"),
        )

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)

        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return self._unauthenticated(request)

        caller_id = self._resolve_caller(token.strip())
        if caller_id is None:
            return self._unauthenticated(request)

        set_current_caller_id(caller_id)
        request.state.user_id = caller_id

        try:
            return await call_next(request)
        finally:
            clear_current_caller_id()
