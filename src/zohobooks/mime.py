import mimetypes
import os

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Types the platform registry is known to miss or to map inconsistently.
_OVERRIDES = {
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".json": "application/json",
    ".pdf": "application/pdf",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def content_type(filename: str) -> str:
    """Best-effort content type for an upload, from the file extension only."""
    ext = os.path.splitext(filename)[1].lower()
    if ext in _OVERRIDES:
        return _OVERRIDES[ext]
    guessed, _ = mimetypes.guess_type(f"file{ext}", strict=False)
    return guessed or DEFAULT_CONTENT_TYPE
