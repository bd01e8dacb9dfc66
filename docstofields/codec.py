from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re

from .errors import DecodeError, ReadError
from .models import DocumentFile, EncodedFile

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = re.compile(r"^data:(.*?);base64,")


async def read_bytes(file: DocumentFile) -> bytes:
    """Load the full payload of a document handle without blocking the loop."""
    if file.content is not None:
        return file.content
    if file.path is None:
        raise ReadError(f"Error reading file {file.name}: no content or path")
    try:
        return await asyncio.to_thread(file.path.read_bytes)
    except OSError as exc:
        raise ReadError(f"Error reading file {file.name}: {exc}") from exc


async def encode(file: DocumentFile) -> EncodedFile:
    data = await read_bytes(file)
    encoded = base64.b64encode(data).decode("ascii")
    mime = file.mime_type or "application/octet-stream"
    return EncodedFile(name=file.name, payload=f"data:{mime};base64,{encoded}")


def split_payload(payload: str) -> tuple[str, str]:
    """Return ``(mime, base64 data)``; the MIME type is empty without a prefix."""
    match = _DATA_URL_PREFIX.match(payload)
    if not match:
        return "", payload
    return match.group(1), payload[match.end():]


def decode_bytes(payload: str) -> bytes:
    _, data = split_payload(payload)
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid base64 payload: {exc}") from exc


def decode(encoded: EncodedFile) -> DocumentFile:
    mime, _ = split_payload(encoded.payload)
    content = decode_bytes(encoded.payload)
    logger.debug("Decoded %s (%d bytes, mime=%r)", encoded.name, len(content), mime)
    return DocumentFile(name=encoded.name, content=content, mime_type=mime)
