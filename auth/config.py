"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (minutes for codes, days for
    sessions) to make configuration intuitive.
    """

    # One-time codes
    otp_expiry_minutes: int = Field(
        default=10,
        description="How long an emailed code remains valid",
        ge=1,
        le=60,
    )
    otp_max_attempts: int = Field(
        default=5,
        description="Verification attempts allowed per code",
        ge=1,
        le=20,
    )
    otp_cleanup_interval_seconds: int = Field(
        default=60,
        description="How often expired codes are swept from the store",
        ge=1,
        le=3600,
    )

    # Sessions
    session_expiry_days: int = Field(
        default=7,
        description="Session token lifetime in days",
        ge=1,
        le=90,
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="Signing algorithm for session tokens",
        pattern="^HS(256|384|512)$",
    )

    # Passwords
    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor",
        ge=4,
        le=16,
    )
    min_password_length: int = Field(
        default=6,
        description="Shortest password accepted at signup",
        ge=1,
    )

    # Rate limiting
    rate_limit_attempts: int = Field(
        default=5,
        description="Max OTP requests per email per window",
        ge=1,
        le=20,
    )
    rate_limit_window_minutes: int = Field(
        default=15,
        description="Rate limit window duration",
        ge=1,
        le=60,
    )

    # Application
    app_base_url: str = Field(
        default="http://localhost:8080",
        description="Base URL linked from outgoing emails",
    )
    app_name: str = Field(
        default="NoteTaker",
        description="Application name for emails",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Browser origins allowed to call the API",
    )
