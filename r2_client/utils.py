"""Logging setup and size/date formatting helpers."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(*, level: int | None = None, log_format: str = DEFAULT_LOG_FORMAT, force: bool = False) -> None:
    """Configure global logging for command line use."""

    kwargs: dict[str, Any] = {"level": level if level is not None else logging.WARNING, "format": log_format}
    if force:
        kwargs["force"] = True
    logging.basicConfig(**kwargs)


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(size, 0))
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_last_modified(last_modified: datetime | None) -> str:
    if not last_modified:
        return "-"
    return last_modified.strftime("%Y-%m-%d %H:%M:%S %Z").strip() or last_modified.isoformat()
