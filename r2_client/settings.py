"""Client defaults persistence helpers."""
from __future__ import annotations

from dataclasses import asdict, dataclass
import json
from pathlib import Path

from .models import DEFAULT_REGION
from .transport import TRANSPORTS


@dataclass
class ClientSettings:
    """Simple container for persistent client defaults."""

    region: str = DEFAULT_REGION
    max_retries: int = 2
    max_upload_size_mb: int = 0
    timeout: float = 30.0
    page_size: int = 1000
    transport: str = "requests"


def _int_or_default(value: object, default: int, *, minimum: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number >= minimum else default


class SettingsStorage:
    """JSON-backed persistence for :class:`ClientSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pyr2_settings.json"
        self._path = Path(storage_path)

    def load(self) -> ClientSettings:
        if not self._path.exists():
            return ClientSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return ClientSettings()
        if not isinstance(data, dict):
            return ClientSettings()

        region = data.get("region")
        if not isinstance(region, str) or not region.strip():
            region = ClientSettings.region
        try:
            timeout = float(data.get("timeout", ClientSettings.timeout))
        except (TypeError, ValueError):
            timeout = ClientSettings.timeout
        if timeout <= 0:
            timeout = ClientSettings.timeout
        transport = data.get("transport")
        if transport not in TRANSPORTS:
            transport = ClientSettings.transport
        return ClientSettings(
            region=region.strip(),
            max_retries=_int_or_default(data.get("max_retries"), ClientSettings.max_retries, minimum=0),
            max_upload_size_mb=_int_or_default(
                data.get("max_upload_size_mb"), ClientSettings.max_upload_size_mb, minimum=0
            ),
            timeout=timeout,
            page_size=min(_int_or_default(data.get("page_size"), ClientSettings.page_size, minimum=1), 1000),
            transport=transport,
        )

    def save(self, settings: ClientSettings) -> None:
        payload = asdict(settings)
        payload["region"] = settings.region.strip() or DEFAULT_REGION
        payload["max_retries"] = max(int(settings.max_retries), 0)
        payload["max_upload_size_mb"] = max(int(settings.max_upload_size_mb), 0)
        payload["timeout"] = max(float(settings.timeout), 1.0)
        payload["page_size"] = min(max(int(settings.page_size), 1), 1000)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
