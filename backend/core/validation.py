"""
Startup checks for the deployment environment.

All problems are collected and reported together so a broken deploy shows
everything that needs fixing at once. Tests bypass the checks with
SKIP_ENV_VALIDATION=1.
"""

import os
from typing import List, Optional
from urllib.parse import urlparse

from backend.core.config import settings

PRODUCTION_SECRETS = ("STRIPE_SECRET_KEY", "SUBSCRIBE_TOKEN_SECRET")
RATE_LIMIT_BACKENDS = ("memory", "redis")


class EnvValidationError(RuntimeError):
    """One or more environment settings are unusable."""

    def __init__(self, problems: List[str]):
        super().__init__("; ".join(problems))
        self.problems = problems


def _app_url_problems(app_url: Optional[str], production: bool) -> List[str]:
    parsed = urlparse(app_url or "")
    if parsed.scheme not in {"http", "https"} or not parsed.netloc or parsed.query or parsed.fragment:
        return ["APP_URL must be an absolute URL without query or fragment (e.g. https://app.example.com)"]
    if production and parsed.scheme != "https":
        return ["APP_URL must use https in production"]
    return []


def validate_env(env: Optional[str] = None, settings_obj=None) -> bool:
    """
    Validate deployment configuration.

    Args:
        env: Override environment name (defaults to settings.ENV)
        settings_obj: Override settings object (defaults to backend.core.config.settings)

    Raises:
        EnvValidationError listing every violated rule.
    """
    if os.getenv("SKIP_ENV_VALIDATION") == "1":
        return True

    cfg = settings_obj or settings
    production = (env or getattr(cfg, "ENV", None) or "development").lower() == "production"

    problems = _app_url_problems(getattr(cfg, "APP_URL", None), production)

    backend = (getattr(cfg, "RATE_LIMIT_BACKEND", None) or "memory").lower()
    if backend not in RATE_LIMIT_BACKENDS:
        problems.append(f"RATE_LIMIT_BACKEND must be one of {', '.join(RATE_LIMIT_BACKENDS)}")

    if production:
        problems.extend(f"{key} is required in production" for key in PRODUCTION_SECRETS if not getattr(cfg, key, None))

    if problems:
        raise EnvValidationError(problems)
    return True
