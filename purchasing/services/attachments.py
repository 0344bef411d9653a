from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from purchasing.app.core.config import settings
from purchasing.app.core.errors import ValidationError

logger = logging.getLogger(__name__)

_safe_module = re.compile(r"^[a-zA-Z0-9_\-]+$")

EXTENSIONS = {
    "application/pdf": ".pdf",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
}


@dataclass(frozen=True)
class Attachment:
    content: bytes
    content_type: str
    filename: str | None = None


def validate_attachment(
    attachment: Attachment,
    *,
    allowed_types: list[str] | None = None,
    max_bytes: int | None = None,
) -> str:
    """Allow-list (documents and images) plus size ceiling. Returns the normalized content type."""
    allowed = [t.lower() for t in (allowed_types or settings.ATTACHMENT_ALLOWED_TYPES)]
    limit = max_bytes or settings.ATTACHMENT_MAX_BYTES

    content_type = (attachment.content_type or "").split(";")[0].strip().lower()
    if content_type == "image/jpg":
        content_type = "image/jpeg"
    if content_type not in allowed:
        raise ValidationError("File format not allowed (PDF/PNG/JPG/WebP only)")
    if not attachment.content:
        raise ValidationError("Empty file")
    if len(attachment.content) > limit:
        raise ValidationError(f"File too large (max {limit // (1024 * 1024)} MB)")
    return content_type


class LocalAttachmentStore:
    """
    Stores files under {root}/{module}/YYYY/MM/DD/<uuid>.<ext> and returns the
    relative path as the stable reference.
    """

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or settings.STORAGE_DIR)

    def save(self, attachment: Attachment, module: str = "invoices") -> str:
        content_type = validate_attachment(attachment)

        module = (module or "").strip().lower()
        if not _safe_module.match(module):
            raise ValidationError("Invalid storage module")

        now = datetime.now(timezone.utc)
        rel_dir = Path(module) / now.strftime("%Y") / now.strftime("%m") / now.strftime("%d")
        disk_dir = self.root.resolve() / rel_dir
        disk_dir.mkdir(parents=True, exist_ok=True)

        fname = f"{uuid4().hex}{EXTENSIONS.get(content_type, '')}"
        (disk_dir / fname).write_bytes(attachment.content)

        ref = f"{rel_dir.as_posix()}/{fname}"
        logger.info("Stored attachment %s (%s, %d bytes)", ref, content_type, len(attachment.content))
        return ref
