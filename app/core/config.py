import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Settings:
    # Database / logging
    database_url: str = os.getenv("LIBRARY_DB", "sqlite:///./library.db")
    log_level: str = os.getenv("LIBRARY_LOG", "INFO")

    # Web root holding bookImages/ and uploads/
    media_root: str = os.getenv("LIBRARY_MEDIA_ROOT", "./wwwroot")

    # Tokens
    jwt_secret: str = os.getenv("LIBRARY_JWT_SECRET", "change-me-library-dev-secret-0123456789")
    jwt_issuer: str = os.getenv("LIBRARY_JWT_ISSUER", "online-library")
    jwt_audience: str = os.getenv("LIBRARY_JWT_AUDIENCE", "online-library")
    token_hours: int = int(os.getenv("LIBRARY_TOKEN_HOURS", "24"))
    link_minutes: int = int(os.getenv("LIBRARY_LINK_MINUTES", "60"))
    otp_minutes: int = int(os.getenv("LIBRARY_OTP_MINUTES", "5"))
    bcrypt_rounds: int = int(os.getenv("LIBRARY_BCRYPT_ROUNDS", "12"))

    # Outbound mail; messages are only logged when no host is set
    smtp_host: Optional[str] = os.getenv("LIBRARY_SMTP_HOST")
    smtp_port: int = int(os.getenv("LIBRARY_SMTP_PORT", "587"))
    smtp_user: Optional[str] = os.getenv("LIBRARY_SMTP_USER")
    smtp_password: Optional[str] = os.getenv("LIBRARY_SMTP_PASSWORD")
    smtp_sender: str = os.getenv("LIBRARY_SMTP_SENDER", "no-reply@library.local")


settings = Settings()
