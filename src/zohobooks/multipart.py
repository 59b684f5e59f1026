import uuid
from collections.abc import Mapping
from dataclasses import dataclass

from .mime import content_type

CRLF = b"\r\n"


@dataclass(frozen=True)
class FilePart:
    field_name: str
    filename: str
    data: bytes
    # None: derive from the filename extension
    content_type: str | None = None


def new_boundary() -> str:
    return f"Boundary-{uuid.uuid4().hex.upper()}"


def _quoted(value: str) -> str:
    """Escape a Content-Disposition parameter value (RFC 7578 section 4.2).

    Raises:
        ValueError: the value contains a line break
    """
    value = str(value)
    if "\r" in value or "\n" in value:
        raise ValueError(f"line break in multipart parameter {value!r}")
    return value.replace('"', "%22")


def multipart_content_type(boundary: str) -> str:
    return f"multipart/form-data; boundary={boundary}"


def encode_multipart(
    fields: Mapping[str, str] | None,
    file_part: FilePart,
    boundary: str | None = None,
) -> tuple[str, bytes]:
    """Build a multipart/form-data body: text fields in insertion order, then the file.

    Returns (boundary, body). A fresh boundary is generated unless one is given.
    """
    boundary = boundary or new_boundary()
    delimiter = f"--{boundary}".encode()
    chunks: list[bytes] = []
    for name, value in (fields or {}).items():
        chunks += [
            delimiter,
            CRLF,
            f'Content-Disposition: form-data; name="{_quoted(name)}"'.encode("utf-8"),
            CRLF,
            CRLF,
            str(value).encode("utf-8"),
            CRLF,
        ]
    ctype = file_part.content_type or content_type(file_part.filename)
    if "\r" in ctype or "\n" in ctype:
        raise ValueError(f"line break in content type {ctype!r}")
    chunks += [
        delimiter,
        CRLF,
        (
            f'Content-Disposition: form-data; name="{_quoted(file_part.field_name)}"; '
            f'filename="{_quoted(file_part.filename)}"'
        ).encode("utf-8"),
        CRLF,
        f"Content-Type: {ctype}".encode(),
        CRLF,
        CRLF,
        file_part.data,
        CRLF,
        delimiter + b"--",
        CRLF,
    ]
    return boundary, b"".join(chunks)
