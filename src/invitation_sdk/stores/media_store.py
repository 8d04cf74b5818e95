"""Local object storage for invitation photos.

Objects live at ``<root>/<namespace>/<filename>`` and are served from
``<public_base_url>/<namespace>/<filename>``.
"""

import io
import logging
import re
import uuid
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps

logger = logging.getLogger("StoryInvitation.stores.media")

DEFAULT_MAX_PX = 1920
DEFAULT_QUALITY = 82
_SAFE_SEGMENT = re.compile(r"^[A-Za-z0-9._-]+$")


def compress_image(data: bytes, max_px: int = DEFAULT_MAX_PX,
                   quality: int = DEFAULT_QUALITY) -> bytes:
    """Downscale and re-encode an image as progressive JPEG."""
    with Image.open(io.BytesIO(data)) as im:
        im = ImageOps.exif_transpose(im)
        im.thumbnail((max_px, max_px), Image.LANCZOS)
        if im.mode in ("RGBA", "LA", "P"):
            im = im.convert("RGBA")
            bg = Image.new("RGB", im.size, (255, 255, 255))
            bg.paste(im, mask=im.split()[-1])
            im = bg
        elif im.mode != "RGB":
            im = im.convert("RGB")
        out = io.BytesIO()
        im.save(out, "JPEG", quality=quality, optimize=True, progressive=True)
        return out.getvalue()


class MediaStore:
    """Stores binary uploads and hands back public URLs."""

    def __init__(self, root: Path, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _namespace_dir(self, namespace: str) -> Path:
        parts = [p for p in namespace.strip("/").split("/") if p]
        if not parts or any(not _SAFE_SEGMENT.match(p) or p in (".", "..") for p in parts):
            raise ValueError(f"Invalid namespace '{namespace}'")
        return self.root.joinpath(*parts)

    def url_for(self, namespace: str, filename: str) -> str:
        return f"{self.public_base_url}/{namespace.strip('/')}/{filename}"

    def upload(self, namespace: str, data: bytes, filename: Optional[str] = None) -> str:
        """Write ``data`` under ``namespace`` and return its public URL."""
        if not filename:
            filename = f"{uuid.uuid4().hex[:12]}.jpg"
        if not _SAFE_SEGMENT.match(filename) or filename in (".", ".."):
            raise ValueError(f"Invalid filename '{filename}'")

        dest_dir = self._namespace_dir(namespace)
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest_path = dest_dir / filename
        dest_path.write_bytes(data)

        logger.info(f"Uploaded {len(data)} bytes to {dest_path}")
        return self.url_for(namespace, filename)

    def list_objects(self, namespace: str) -> list[str]:
        ns_dir = self._namespace_dir(namespace)
        if not ns_dir.exists():
            return []
        return sorted(self.url_for(namespace, p.name) for p in ns_dir.iterdir() if p.is_file())

    def delete_namespace(self, namespace: str) -> int:
        """Delete every object under ``namespace``. Returns the count removed."""
        ns_dir = self._namespace_dir(namespace)
        if not ns_dir.exists():
            return 0
        removed = 0
        for p in ns_dir.iterdir():
            if p.is_file():
                p.unlink()
                removed += 1
        if not any(ns_dir.iterdir()):
            ns_dir.rmdir()
        logger.info(f"Deleted {removed} objects under {namespace}")
        return removed

    def path_for_url(self, url: str) -> Optional[Path]:
        """Map a public URL back to its file, or None if it isn't ours."""
        prefix = self.public_base_url + "/"
        if not url.startswith(prefix):
            return None
        rel = url[len(prefix):]
        namespace, _, filename = rel.rpartition("/")
        if not namespace or not filename:
            return None
        try:
            path = self._namespace_dir(namespace) / filename
        except ValueError:
            return None
        return path if path.is_file() else None
