"""Training-core configuration with environment-specific profiles.

Supports dev, staging, and production environments via APP_ENV.
All values can be overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Immutable training-core settings resolved from environment."""

    app_env: str = "dev"
    log_level: str = "INFO"
    weight_unit: str = "kg"

    # Progression safety
    max_weekly_increase: float = 0.10
    history_window: int = 5

    # Advisory service (optional, never authoritative)
    advisory_enabled: bool = False
    advisory_url: str = ""
    advisory_api_key: str = ""
    advisory_timeout_sec: float = 10.0
    advisory_min_confidence: float = 0.8
    advisory_min_diff: float = 0.05

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def advisory_configured(self) -> bool:
        return self.advisory_enabled and bool(self.advisory_url)


# -- Environment profiles --

_ENV_PROFILES: dict[str, dict] = {
    "dev": {
        "log_level": "DEBUG",
        "advisory_enabled": True,
        "advisory_timeout_sec": 20.0,
    },
    "staging": {
        "log_level": "INFO",
        "advisory_enabled": True,
        "advisory_timeout_sec": 10.0,
    },
    "production": {
        "log_level": "WARNING",
        "advisory_enabled": False,
        "advisory_timeout_sec": 5.0,
    },
}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def get_settings() -> Settings:
    """Build Settings by merging environment profile with env-var overrides."""
    app_env = os.getenv("APP_ENV", "dev")
    profile = _ENV_PROFILES.get(app_env, _ENV_PROFILES["dev"])

    unit = os.getenv("WEIGHT_UNIT", "kg").strip().lower()
    if unit not in {"kg", "lbs"}:
        unit = "kg"

    return Settings(
        app_env=app_env,
        log_level=os.getenv("LOG_LEVEL", profile.get("log_level", "INFO")),
        weight_unit=unit,
        max_weekly_increase=float(os.getenv("MAX_WEEKLY_INCREASE", "0.10")),
        history_window=int(os.getenv("HISTORY_WINDOW", "5")),
        advisory_enabled=_env_flag("ADVISORY_ENABLED", profile.get("advisory_enabled", False)),
        advisory_url=os.getenv("ADVISORY_URL", ""),
        advisory_api_key=os.getenv("ADVISORY_API_KEY", ""),
        advisory_timeout_sec=float(
            os.getenv("ADVISORY_TIMEOUT_SEC", str(profile.get("advisory_timeout_sec", 10.0)))
        ),
        advisory_min_confidence=float(os.getenv("ADVISORY_MIN_CONFIDENCE", "0.8")),
        advisory_min_diff=float(os.getenv("ADVISORY_MIN_DIFF", "0.05")),
    )
