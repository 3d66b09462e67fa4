"""Runtime settings.

Everything tunable comes from environment variables (optionally via a `.env`
file). Chunk sizes trade scheduling overhead against responsiveness; they are
not correctness knobs.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

BACKEND_DIR = Path(__file__).resolve().parents[1]


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip() or default


def _env_int(key: str, default: int, *, minimum: int = 1) -> int:
    raw = _env(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, value)


class Settings(BaseModel):
    calc_chunk_size: int = 5000
    kpi_chunk_size: int = 20000
    search_chunk_size: int = 5000
    max_rows_for_viz: int = 10000
    data_warning_threshold: int = 10000
    results_per_page: int = 50
    max_upload_mb: int = 50
    dashboards_path: Path = BACKEND_DIR / "data" / "dashboards.json"
    cors_origins: List[str] = ["*"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings from the environment once per process."""
    origins = _env("CORS_ORIGINS", "*") or "*"
    path = _env("DASHBOARDS_PATH")
    return Settings(
        calc_chunk_size=_env_int("CALC_CHUNK_SIZE", 5000),
        kpi_chunk_size=_env_int("KPI_CHUNK_SIZE", 20000),
        search_chunk_size=_env_int("SEARCH_CHUNK_SIZE", 5000),
        max_rows_for_viz=_env_int("MAX_ROWS_FOR_VIZ", 10000),
        data_warning_threshold=_env_int("DATA_WARNING_THRESHOLD", 10000),
        results_per_page=_env_int("RESULTS_PER_PAGE", 50),
        max_upload_mb=_env_int("MAX_UPLOAD_MB", 50),
        dashboards_path=Path(path) if path else BACKEND_DIR / "data" / "dashboards.json",
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
    )
