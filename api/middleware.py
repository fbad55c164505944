"""Request-scoped middleware for API requests."""

from collections.abc import Callable
from uuid import UUID, uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from utils.actor_context import set_current_actor_id, clear_current_actor_id

ActorResolver = Callable[[Request], UUID | None]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def header_actor_resolver(request: Request) -> UUID | None:
    """
    Read the acting user from the X-Actor-ID header.

    Meant for deployments where an authenticating proxy sets the header.
    Malformed values resolve to no actor.
    """
    value = request.headers.get("X-Actor-ID")
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


class ActorContextMiddleware(BaseHTTPMiddleware):
    """Middleware that resolves the acting user and sets actor context.

    For protected routes:
    1. Resolves the actor via the injected resolver
    2. Rejects the request with 401 when no actor is resolved
    3. Sets actor_id in request.state and actor context (for audit attribution)
    4. Clears context after request completes

    Public paths bypass actor resolution entirely.
    """

    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, actor_resolver: ActorResolver = header_actor_resolver):
        super().__init__(app)
        self._actor_resolver = actor_resolver

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path):
                return True
        return False

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        if self._is_public_path(request.url.path):
            return await call_next(request)

        actor_id = self._actor_resolver(request)
        if actor_id is None:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    "Authentication required",
                ).model_dump(mode="json"),
            )

        set_current_actor_id(actor_id)
        request.state.actor_id = actor_id

        try:
            return await call_next(request)
        finally:
            clear_current_actor_id()
