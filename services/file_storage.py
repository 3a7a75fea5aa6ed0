from __future__ import annotations

import glob
import mimetypes
import os
import re
from datetime import datetime, timezone
from typing import Any, Optional

from utils import ApiError, sanitize_filename


_STORAGE_KEY_RE = re.compile(r"[0-9a-fA-F]{32}")

ALLOWED_EXTENSIONS = {".pdf", ".jpg", ".jpeg", ".png", ".doc", ".docx"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}


def save_upload(
    cfg: Any,
    *,
    category: str,
    owner_id: int,
    file_bytes: bytes,
    file_name: str,
    mime_type: str = "",
    allowed_extensions: set[str] | None = None,
    max_mb: int | None = None,
) -> dict[str, Any]:
    """Writes the file under UPLOAD_DIR as "<storageKey>_<stored name>"."""
    size = len(file_bytes or b"")
    if size <= 0:
        raise ApiError("BAD_REQUEST", "Empty file")
    max_mb = int(max_mb or getattr(cfg, "MAX_UPLOAD_MB", 10) or 10)
    if size > max_mb * 1024 * 1024:
        raise ApiError("PAYLOAD_TOO_LARGE", f"Max upload size is {max_mb}MB")

    safe_name = sanitize_filename(file_name or "file")
    ext = os.path.splitext(safe_name)[1].lower()
    if allowed_extensions is not None:
        if ext not in allowed_extensions:
            raise ApiError("BAD_REQUEST", f"Only {', '.join(sorted(allowed_extensions))} files are allowed")
    elif ext not in ALLOWED_EXTENSIONS:
        raise ApiError("BAD_REQUEST", "Only PDF, image and Word files are allowed")

    upload_dir = str(getattr(cfg, "UPLOAD_DIR", "./uploads") or "./uploads")
    os.makedirs(upload_dir, exist_ok=True)

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    stored_name = f"{str(category or 'FILE').upper()}_{owner_id}_{stamp}_{safe_name}"
    storage_key = os.urandom(16).hex()
    with open(os.path.join(upload_dir, f"{storage_key}_{stored_name}"), "wb") as f:
        f.write(file_bytes)

    mime = str(mime_type or "").strip() or mimetypes.guess_type(safe_name)[0] or "application/octet-stream"
    return {"storageKey": storage_key, "fileName": safe_name, "mimeType": mime, "size": size}


def resolve_path(cfg: Any, storage_key: str) -> Optional[str]:
    key = str(storage_key or "").strip()
    if not _STORAGE_KEY_RE.fullmatch(key):
        return None
    upload_dir = str(getattr(cfg, "UPLOAD_DIR", "./uploads") or "./uploads")
    matches = sorted(glob.glob(os.path.join(upload_dir, f"{key}_*")))
    return matches[0] if matches else None


def file_response_spec(cfg: Any, *, storage_key: str, file_name: str, mime_type: str, as_attachment: bool) -> dict[str, Any]:
    path = resolve_path(cfg, storage_key)
    if not path:
        raise ApiError("NOT_FOUND", "File not found")
    name = file_name or os.path.basename(path)
    return {
        "__file__": True,
        "path": path,
        "downloadName": name,
        "mimeType": mime_type or mimetypes.guess_type(name)[0] or "application/octet-stream",
        "asAttachment": bool(as_attachment),
    }


def delete_upload(cfg: Any, storage_key: str) -> bool:
    path = resolve_path(cfg, storage_key)
    if not path:
        return False
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    return True
