# Runtime configuration - economics, persistence and demo flags from the environment
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # Load .env so local reviewers can set DEMO_MODE / SNAPSHOT_PATH


@dataclass(frozen=True)
class Economy:
    """Fixed economic constants. view_cost is also the amount transferred to the author."""
    initial_credits: int = 30
    view_cost: int = 10
    max_simulated_views: int = 5

    def __post_init__(self):
        if self.initial_credits < 0:
            raise ValueError("initial_credits must be >= 0")
        if self.view_cost <= 0:
            raise ValueError("view_cost must be > 0")
        if self.max_simulated_views < 0:
            raise ValueError("max_simulated_views must be >= 0")


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def load_economy() -> Economy:
    return Economy(
        initial_credits=_int_env("INITIAL_CREDITS", 30),
        view_cost=_int_env("VIEW_COST", 10),
        max_simulated_views=_int_env("MAX_SIMULATED_VIEWS", 5),
    )


def is_demo_mode() -> bool:
    """True only when DEMO_MODE env var is explicitly 'true' (case-insensitive)."""
    return os.environ.get("DEMO_MODE", "").lower() == "true"


def snapshot_path() -> Optional[str]:
    """Path of the JSON snapshot file, or None when persistence is disabled."""
    path = os.environ.get("SNAPSHOT_PATH", "").strip()
    return path or None


def snapshot_debounce_seconds() -> float:
    raw = os.environ.get("SNAPSHOT_DEBOUNCE_SECONDS", "").strip()
    return float(raw) if raw else 0.8


def allowed_origins() -> list:
    origins = [
        "http://localhost:5173",
        "http://localhost:5174",
    ]
    frontend_url = os.environ.get("FRONTEND_URL", "")
    if frontend_url:
        origins.append(frontend_url)
    return origins


def setup_logging(level: Optional[str] = None):
    """Configure root logging once for the application."""
    level = level or os.environ.get("LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
