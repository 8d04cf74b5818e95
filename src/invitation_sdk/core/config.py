"""Runtime configuration read from environment variables."""

import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel

DEFAULT_DATA_DIR = "./data"
DEFAULT_PUBLIC_URL = "https://www.mobilewedding.kr"
DEFAULT_MEDIA_URL = "http://localhost:8000/media"
DEFAULT_RETENTION_DAYS = 90
DEFAULT_WEB_HOST = "127.0.0.1"
DEFAULT_WEB_PORT = 8000


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class AppConfig(BaseModel):
    """Settings shared by the MCP server and the web app."""
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    public_url: str = DEFAULT_PUBLIC_URL
    media_url: str = DEFAULT_MEDIA_URL
    retention_days: int = DEFAULT_RETENTION_DAYS
    require_order: bool = False
    cleanup_api_key: Optional[str] = None
    preview_template_path: Optional[Path] = None
    web_host: str = DEFAULT_WEB_HOST
    web_port: int = DEFAULT_WEB_PORT

    @property
    def invitations_dir(self) -> Path:
        return self.data_dir / "invitations"

    @property
    def media_dir(self) -> Path:
        return self.data_dir / "media"

    @property
    def orders_path(self) -> Path:
        return self.data_dir / "approved_orders.json"

    @classmethod
    def from_env(cls) -> "AppConfig":
        template = os.getenv("PREVIEW_TEMPLATE_PATH")
        return cls(
            data_dir=Path(os.getenv("INVITATION_DATA_DIR", DEFAULT_DATA_DIR)),
            public_url=os.getenv("INVITATION_PUBLIC_URL", DEFAULT_PUBLIC_URL).rstrip("/"),
            media_url=os.getenv("INVITATION_MEDIA_URL", DEFAULT_MEDIA_URL).rstrip("/"),
            retention_days=int(os.getenv("INVITATION_RETENTION_DAYS", DEFAULT_RETENTION_DAYS)),
            require_order=_env_bool("INVITATION_REQUIRE_ORDER"),
            cleanup_api_key=os.getenv("CLEANUP_API_KEY") or None,
            preview_template_path=Path(template) if template else None,
            web_host=os.getenv("INVITATION_WEB_HOST", DEFAULT_WEB_HOST),
            web_port=int(os.getenv("INVITATION_WEB_PORT", DEFAULT_WEB_PORT)),
        )
