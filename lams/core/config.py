import os
import logging
from pydantic import BaseModel, Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class SlackSettings(BaseModel):
    bot_token: Optional[str] = Field(default=os.getenv("SLACK_BOT_TOKEN"))
    signing_secret: Optional[str] = Field(default=os.getenv("SLACK_SIGNING_SECRET"))
    # Only meant for local development against a Slack sandbox
    allow_unsigned: bool = Field(default=os.getenv("SLACK_ALLOW_UNSIGNED", "false").lower() == "true")
    replay_window_seconds: int = int(os.getenv("SLACK_REPLAY_WINDOW_SECONDS", "300"))
    timeout_seconds: int = 30


class Config(BaseModel):
    app_name: str = "Leave & Attendance Management System"
    environment: str = os.getenv("APP_ENV", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    api_prefix: str = "/api"
    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"
    actor_header: str = "X-Employee-Id"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./lams.db")
    transaction_max_attempts: int = int(os.getenv("TRANSACTION_MAX_ATTEMPTS", "3"))

    # Slack
    slack: SlackSettings = SlackSettings()
    approvals_url: str = os.getenv("APPROVALS_URL", "http://localhost:3000/approvals")

    # Attendance
    timezone: str = os.getenv("TIMEZONE", "Asia/Kolkata")
    auto_clock_out_hour: int = 19
    missed_clock_in_hour: int = 11

    # Scalability & Performance
    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))


settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if settings.slack.allow_unsigned:
        raise RuntimeError(
            "FATAL: SLACK_ALLOW_UNSIGNED must not be enabled outside development."
        )
    if not settings.slack.signing_secret:
        _logger.warning("⚠ SLACK_SIGNING_SECRET is not set; Slack interactions will be rejected.")
elif settings.slack.allow_unsigned:
    _logger.warning("⚠ Accepting unsigned Slack requests, only acceptable in development.")
