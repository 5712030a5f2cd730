import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_TIMEOUT_SECONDS: float = 10.0

    # Plan identifiers (feed the tier catalog whitelist)
    STRIPE_PRICE_PERSONAL: str = "price_personal"
    STRIPE_PRICE_PLUS: str = "price_1SwtCbBfSldKMuDjM3p0kyG4"
    STRIPE_PRICE_PRO: str = "price_1SwtCbBfSldKMuDjDmRHqErh"
    STRIPE_PRICE_FAMILY: str = "price_family"
    STRIPE_PRICE_TEAM: str = "price_1SwtCcBfSldKMuDjEKBqQ6lH"

    # App URLs
    APP_URL: str = "http://localhost:3000"

    # Rate limiting
    RATE_LIMIT_BACKEND: str = "memory"  # memory | redis
    REDIS_URL: str = "redis://localhost:6379"
    REDIS_TIMEOUT_SECONDS: float = 1.0
    # Comma-separated peer addresses whose X-Forwarded-For is honoured
    TRUSTED_PROXIES: str = ""
    CHECKOUT_RATE_LIMIT: int = 10
    CHECKOUT_RATE_WINDOW_SECONDS: int = 60
    SUBSCRIBE_RATE_LIMIT: int = 5
    SUBSCRIBE_RATE_WINDOW_SECONDS: int = 3600
    API_RATE_LIMIT: int = 100  # 0 = disabled
    API_RATE_WINDOW_SECONDS: int = 60

    # Waitlist
    SUBSCRIBE_TOKEN_SECRET: Optional[str] = None

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("clawdbot")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "STRIPE_SECRET_KEY",
        "SUBSCRIBE_TOKEN_SECRET",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
