"""HTTP routes for authentication."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from auth.service import AuthService
from auth.types import (
    AuthenticatedUser,
    GoogleAuthRequest,
    LoginRequest,
    OTPRequest,
    SignupRequest,
    VerifyOTPRequest,
)
from api.base import success_response


def _token_payload(result: AuthenticatedUser) -> dict:
    return {
        "token": result.session.token,
        "user": result.user.profile().model_dump(mode="json"),
    }


def create_auth_router(auth_service: AuthService) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(prefix="/api/auth", tags=["auth"])

    @router.post("/signup", status_code=201)
    def signup(body: SignupRequest):
        """Register with email and password. Returns a session token."""
        result = auth_service.signup(body.email, body.name, body.password)
        return JSONResponse(
            status_code=201,
            content=success_response(_token_payload(result)).model_dump(mode="json"),
        )

    @router.post("/login")
    def login(body: LoginRequest):
        result = auth_service.login(body.email, body.password)
        return success_response(_token_payload(result)).model_dump(mode="json")

    @router.post("/send-otp")
    def send_otp(body: OTPRequest):
        """Email a one-time code.

        The response is the same whether or not the email was delivered.
        """
        auth_service.send_otp(body.email)
        return success_response({"message": "OTP sent to your email"}).model_dump(mode="json")

    @router.post("/verify-otp")
    def verify_otp(body: VerifyOTPRequest):
        """Exchange a one-time code for a session, creating the account on first use."""
        result = auth_service.verify_otp(body.email, body.otp)
        return success_response(_token_payload(result)).model_dump(mode="json")

    @router.post("/google")
    def google_login(body: GoogleAuthRequest):
        result = auth_service.google_login(body.token)
        return success_response(_token_payload(result)).model_dump(mode="json")

    @router.get("/me")
    def get_current_user(request: Request):
        """Get current authenticated user.

        Requires authentication (middleware sets user context).
        """
        user = auth_service.get_user(request.state.user_id)
        return success_response({
            "user": user.profile().model_dump(mode="json"),
        }).model_dump(mode="json")

    return router
