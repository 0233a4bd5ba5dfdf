"""Validation and normalization of inbound photo payloads."""

import base64
import binascii
import re

from photo_survey.domain.errors import InvalidInputError, PhotoTooLargeError

MAX_PHOTO_BYTES = 10 * 1024 * 1024

_DATA_URI_PATTERN = re.compile(
    r"^data:(?P<mime>image/[a-zA-Z0-9.+-]+);base64,(?P<payload>.+)$", re.DOTALL
)


def photo_from_bytes(
    image_bytes: bytes, max_bytes: int = MAX_PHOTO_BYTES
) -> str:
    """Validate raw image bytes and return them as a data URL."""
    if not image_bytes:
        raise InvalidInputError("No image provided")
    _check_size(len(image_bytes), max_bytes)
    return to_data_url(image_bytes)


def photo_from_data_uri(data_uri: str, max_bytes: int = MAX_PHOTO_BYTES) -> str:
    """Validate a base64 image data URI and return it unchanged."""
    cleaned = data_uri.strip()
    if not cleaned:
        raise InvalidInputError("No image provided")
    match = _DATA_URI_PATTERN.match(cleaned)
    if match is None:
        raise InvalidInputError("Image must be a base64 image data URI")
    payload = match.group("payload")
    # Cheap bound before decoding: base64 inflates by 4/3.
    if len(payload) * 3 // 4 > max_bytes + 3:
        raise PhotoTooLargeError("Photo exceeds the 10 MB limit")
    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInputError("Image data is not valid base64") from exc
    if not decoded:
        raise InvalidInputError("No image provided")
    _check_size(len(decoded), max_bytes)
    return cleaned


def to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in {b"GIF87a", b"GIF89a"}:
        return "image/gif"
    if image_bytes[4:12] in {b"ftypheic", b"ftypheix", b"ftypmif1"}:
        return "image/heic"
    return "image/jpeg"


def _check_size(size: int, max_bytes: int) -> None:
    if size > max_bytes:
        raise PhotoTooLargeError("Photo exceeds the 10 MB limit")
