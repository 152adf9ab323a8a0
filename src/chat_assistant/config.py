from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class AppConfig:
    """Process configuration, read once from the environment at startup."""

    data_dir: Path = Path("data")
    messages_path: Path = Path("data/messages.json")
    keystore_path: Path = Path("data/keystore.json")

    # "native" uses the OS scheduler, "timer" the in-process fallback
    notification_backend: str = "native"
    # "google", "ics" or "none"
    calendar_backend: str = "ics"
    google_credentials_file: Optional[str] = None
    google_calendar_id: str = "primary"
    ics_export_dir: Path = Path("data/calendar")

    calendar_lead_minutes: int = 15
    reminder_duration_minutes: int = 30

    link_previews_enabled: bool = True
    link_preview_api_url: str = "https://api.microlink.io"
    link_preview_timeout_s: float = 10.0

    @classmethod
    def from_env(cls) -> "AppConfig":
        data_dir = Path(os.getenv("ASSISTANT_DATA_DIR", "data"))
        return cls(
            data_dir=data_dir,
            messages_path=Path(os.getenv("MESSAGES_PATH", str(data_dir / "messages.json"))),
            keystore_path=Path(os.getenv("KEYSTORE_PATH", str(data_dir / "keystore.json"))),
            notification_backend=os.getenv("NOTIFICATION_BACKEND", "native").strip().lower(),
            calendar_backend=os.getenv("CALENDAR_BACKEND", "ics").strip().lower(),
            google_credentials_file=os.getenv("GOOGLE_CREDENTIALS_FILE") or None,
            google_calendar_id=os.getenv("GOOGLE_CALENDAR_ID", "primary").strip(),
            ics_export_dir=Path(os.getenv("ICS_EXPORT_DIR", str(data_dir / "calendar"))),
            calendar_lead_minutes=int(os.getenv("CALENDAR_LEAD_MINUTES", "15")),
            reminder_duration_minutes=int(os.getenv("REMINDER_DURATION_MINUTES", "30")),
            link_previews_enabled=_env_flag("LINK_PREVIEWS_ENABLED", "true"),
            link_preview_api_url=os.getenv(
                "LINK_PREVIEW_API_URL", "https://api.microlink.io"
            ).strip(),
            link_preview_timeout_s=float(os.getenv("LINK_PREVIEW_TIMEOUT_S", "10")),
        )
