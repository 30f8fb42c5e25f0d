import logging
import re
import uuid

from fastapi import APIRouter, Depends, File, UploadFile

from ..core.envelope import ok
from ..deps import get_current_user
from ..errors import ValidationError
from ..models import User
from ..settings import settings
from ..storage import ObjectStore, get_store

router = APIRouter()
logger = logging.getLogger("chefhub.uploads")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(name: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", name.rsplit("/", 1)[-1].rsplit("\\", 1)[-1]).strip("._")
    return cleaned or "file"


@router.post("/upload")
def upload_file(
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    store: ObjectStore = Depends(get_store),
):
    """Store one file and return its public URL."""
    data = file.file.read(settings.upload_max_bytes + 1)
    if len(data) > settings.upload_max_bytes:
        raise ValidationError.field(
            "file", f"The file may not be greater than {settings.upload_max_bytes // 1024} kilobytes."
        )
    if not data:
        raise ValidationError.field("file", "The file is empty.")

    key = f"uploads/{uuid.uuid4().hex}_{safe_filename(file.filename or 'file')}"
    result = store.put_bytes(
        key=key, content_type=file.content_type or "application/octet-stream", data=data
    )
    logger.info(f"User {user.id} uploaded {key} ({len(data)} bytes)")
    return ok(data={"url": result.public_url, "path": result.key}, message="File uploaded successfully")
