import io
import logging
from pathlib import Path
from typing import Optional
from uuid import uuid4

from PIL import Image

from resume_builder.core.config import settings

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """Stores blobs as files under ``root`` and addresses them by public URL."""

    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/{name}"

    def path_for(self, url: str) -> Optional[Path]:
        prefix = self.base_url + "/"
        if not url.startswith(prefix):
            return None
        name = url[len(prefix):].split("?", 1)[0]
        # Only flat names; nothing may escape the blob root
        if not name or "/" in name or name in (".", ".."):
            return None
        return self.root / name

    async def put(self, name: str, data: bytes) -> str:
        path = self.root / name
        path.write_bytes(data)
        logger.info("Stored blob %s (%d bytes)", name, len(data))
        return self.url_for(name)

    async def delete(self, url: str) -> None:
        path = self.path_for(url)
        if path is None:
            logger.warning("Refusing to delete blob outside store: %s", url)
            return
        path.unlink(missing_ok=True)
        logger.info("Deleted blob %s", path.name)


def normalize_photo(raw: bytes, max_side: int = None) -> bytes:
    """Re-encode an uploaded photo as WEBP, no side longer than ``max_side``."""
    max_side = max_side or settings.PHOTO_MAX_SIDE
    img = Image.open(io.BytesIO(raw))
    img = img.convert("RGB")
    img.thumbnail((max_side, max_side))
    out = io.BytesIO()
    img.save(out, format="WEBP", quality=90, method=6)
    return out.getvalue()


def photo_blob_name() -> str:
    return f"{uuid4().hex}.webp"


_blob_store: Optional[LocalBlobStore] = None


def get_blob_store() -> LocalBlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = LocalBlobStore(settings.BLOB_DIR, settings.BLOB_BASE_URL)
    return _blob_store
