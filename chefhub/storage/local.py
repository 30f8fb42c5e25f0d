import os
import logging
from pathlib import Path

from .s3_compat import PutResult
from ..settings import settings

logger = logging.getLogger("chefhub.storage")


def media_root() -> Path:
    return Path(settings.media_root) if settings.media_root else (Path(os.getcwd()) / "media")


class LocalStorage:
    def __init__(self, root: Path | None = None, base_url: str | None = None):
        self.root = root or media_root()
        self.base_url = (base_url or settings.media_base_url).rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def put_bytes(self, *, key: str, content_type: str, data: bytes) -> PutResult:
        """
        Save bytes to local disk.
        key: uploads/{uuid}_{filename}
        Returns: key plus public URL under media_base_url
        """
        if ".." in key or key.startswith("/"):
            raise ValueError("Invalid storage key")

        file_path = self.root / key
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "wb") as f:
            f.write(data)

        logger.info(f"Saved {len(data)} bytes ({content_type}) to {file_path}")
        return PutResult(key=key, public_url=f"{self.base_url}/{key}")

    def exists(self, key: str) -> bool:
        return (self.root / key).exists()
