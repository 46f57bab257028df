"""Security middleware for FastAPI - bearer token validation and user context."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.session import SessionManager
from auth.exceptions import InvalidTokenError
from api.base import error_response, ErrorCodes
from utils.request_context import set_current_user_id, clear_current_user_id


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the bearer token and sets user context.

    For protected routes:
    1. Extracts the token from 'Authorization: Bearer <token>'
    2. Validates it via SessionManager
    3. Sets user_id in request.state and user context (for RLS)
    4. Clears context after request completes

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = [
        "/api/auth/signup",
        "/api/auth/login",
        "/api/auth/send-otp",
        "/api/auth/verify-otp",
        "/api/auth/google",
        "/api/ping",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, session_manager: SessionManager):
        super().__init__(app)
        self._session_manager = session_manager

    def _is_public_path(self, path: str) -> bool:
        """Exact match, or a sub-path of a public path."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path + "/"):
                return True
        return False

    @staticmethod
    def _bearer_token(request: Request) -> str | None:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        path = request.url.path

        # CORS preflight and public paths skip auth
        if request.method == "OPTIONS" or self._is_public_path(path):
            return await call_next(request)

        token = self._bearer_token(request)

        if not token:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    "No token provided",
                ).model_dump(mode="json"),
            )

        try:
            session = self._session_manager.validate_session(token)
        except InvalidTokenError as e:
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.INVALID_TOKEN,
                    str(e),
                ).model_dump(mode="json"),
            )

        # Set user context for RLS
        set_current_user_id(session.user_id)
        request.state.user_id = session.user_id
        request.state.session = session

        try:
            response = await call_next(request)
            return response
        finally:
            # Always clear context
            clear_current_user_id()
