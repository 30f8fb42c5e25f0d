"""Object storage for uploads: local disk in development, S3-compatible in production."""

from typing import Protocol

from ..settings import settings
from .s3_compat import PutResult


class ObjectStore(Protocol):
    def put_bytes(self, *, key: str, content_type: str, data: bytes) -> PutResult: ...


def get_store() -> ObjectStore:
    if settings.storage_backend == "s3":
        from .s3_compat import build_s3_store
        return build_s3_store()
    from .local import LocalStorage
    return LocalStorage()
