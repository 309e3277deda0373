import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")


@dataclass(frozen=True)
class Settings:
    database_url: str
    razorpay_key_id: Optional[str]
    razorpay_key_secret: Optional[str]
    razorpay_webhook_secret: Optional[str]
    razorpay_timeout: float
    razorpay_max_retries: int
    allowed_origins: Tuple[str, ...]
    jwt_secret: Optional[str]
    port: int
    log_level: str
    app_env: str

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


def _split_origins(raw: str) -> Tuple[str, ...]:
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


@lru_cache()
def get_settings() -> Settings:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

    return Settings(
        database_url=database_url,
        razorpay_key_id=os.getenv("RAZORPAY_KEY_ID"),
        razorpay_key_secret=os.getenv("RAZORPAY_KEY_SECRET"),
        # An empty secret counts as "not configured"
        razorpay_webhook_secret=os.getenv("RAZORPAY_WEBHOOK_SECRET") or None,
        razorpay_timeout=float(os.getenv("RAZORPAY_TIMEOUT", "10")),
        razorpay_max_retries=int(os.getenv("RAZORPAY_MAX_RETRIES", "3")),
        allowed_origins=_split_origins(os.getenv("ALLOWED_ORIGINS", "*")),
        jwt_secret=os.getenv("JWT_SECRET") or None,
        port=int(os.getenv("PORT", "5000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        app_env=os.getenv("APP_ENV", "development"),
    )
