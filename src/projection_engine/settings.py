"""Environment-variable-based defaults for the plan-projection CLI."""

from __future__ import annotations

import os

LOG_LEVEL: str = os.environ.get("PROJECTION_LOG_LEVEL", "INFO").upper()
DEFAULT_PROFILE: str | None = os.environ.get("PROJECTION_DEFAULT_PROFILE") or None
OPTIMIZER_ENABLED: bool = os.environ.get("PROJECTION_OPTIMIZER_ENABLED", "1").strip().lower() not in {
    "0",
    "false",
    "no",
    "off",
}
