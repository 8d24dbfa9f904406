import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

PACKAGE_DIR = Path(__file__).resolve().parents[1]
ENV_PATH = PACKAGE_DIR / ".env"

load_dotenv(ENV_PATH)
load_dotenv()


def _env_str(name: str, default: str) -> str:
    return (os.getenv(name) or default).strip() or default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (ValueError, TypeError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (ValueError, TypeError):
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "off", "no"}


@dataclass(frozen=True)
class Settings:
    """
    Read-only runtime configuration, resolved from the environment once per
    process. Collaborator handles are built from this at startup.
    """

    gemini_api_key: str = field(default_factory=lambda: (os.getenv("GEMINI_API_KEY") or "").strip())
    gemini_model: str = field(default_factory=lambda: _env_str("GEMINI_MODEL", "gemini-2.5-flash"))
    gemini_base_url: str = field(
        default_factory=lambda: _env_str("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
    )
    gemini_timeout_s: float = field(default_factory=lambda: _env_float("GEMINI_TIMEOUT_S", 20.0))

    zero_shot_enabled: bool = field(default_factory=lambda: _env_flag("ZERO_SHOT_ENABLED", True))
    zero_shot_model: str = field(default_factory=lambda: _env_str("ZERO_SHOT_MODEL", "facebook/bart-large-mnli"))
    classifier_timeout_s: float = field(default_factory=lambda: _env_float("CLASSIFIER_TIMEOUT_S", 15.0))

    # Upper bound for the whole collaborator phase of one triage request.
    triage_deadline_s: float = field(default_factory=lambda: _env_float("TRIAGE_DEADLINE_S", 45.0))

    database_url: str = field(default_factory=lambda: _env_str("DATABASE_URL", "sqlite:///./triagebot.db"))
    sql_echo: bool = field(default_factory=lambda: _env_flag("SQL_ECHO", False))
    history_page_limit: int = field(default_factory=lambda: _env_int("HISTORY_PAGE_LIMIT", 50))

    @property
    def generation_configured(self) -> bool:
        return bool(self.gemini_api_key) and self.gemini_api_key != "your-key"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
