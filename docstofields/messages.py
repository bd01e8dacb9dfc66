"""Cross-window message protocol.

Every message is a JSON envelope ``{"type": ..., "source": ..., ...}``. The
client tags what it sends with ``CLIENT_SOURCE`` and only accepts messages
tagged ``VIEWER_SOURCE``; anything else is ignored.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from .models import EncodedFile, FieldSpec, WindowLocation, WindowSize

logger = logging.getLogger(__name__)

CLIENT_SOURCE = "docstofields"
VIEWER_SOURCE = "doc2fields-viewer"


class Envelope(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source: str = CLIENT_SOURCE


# viewer -> client


class InitMessage(Envelope):
    type: Literal["init"] = "init"


class ExtractedFieldsMessage(Envelope):
    type: Literal["extractedFields"] = "extractedFields"
    extracted_fields: Any = None


class FileMessage(Envelope):
    type: Literal["file"] = "file"
    file: EncodedFile
    text: Optional[str] = None


class LocationMessage(Envelope):
    type: Literal["location"] = "location"
    location: WindowLocation
    size: Optional[WindowSize] = None


class SizeMessage(Envelope):
    type: Literal["size"] = "size"
    size: WindowSize


InboundMessage = Annotated[
    Union[InitMessage, ExtractedFieldsMessage, FileMessage, LocationMessage, SizeMessage],
    Field(discriminator="type"),
]
_inbound_adapter: TypeAdapter = TypeAdapter(InboundMessage)


# client -> viewer


class ShowFieldsMessage(Envelope):
    type: Literal["showFields"] = "showFields"
    show_fields: bool


class FieldsMessage(Envelope):
    type: Literal["fields"] = "fields"
    fields: List[FieldSpec]


class KeyMessage(Envelope):
    type: Literal["key"] = "key"
    key: Optional[str] = None


class ViewerSettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    model: Optional[str] = None
    enable_textract: bool = False
    prompt: Optional[str] = None
    system_prompt: Optional[str] = None
    classifier_prompt: Optional[str] = None
    classifiers: Optional[Dict[str, Dict[str, Any]]] = None


class SettingsMessage(Envelope):
    type: Literal["settings"] = "settings"
    settings: ViewerSettings


class FieldValuesMessage(Envelope):
    type: Literal["fieldValues"] = "fieldValues"
    field_values: Any
    blocks: List[Dict[str, Any]] = Field(default_factory=list)


# Older viewers flag the message kind with a key instead of a ``type``.
_LEGACY_KEYS = (
    ("init", "init"),
    ("extractedFields", "extractedFields"),
    ("file", "file"),
    ("location", "location"),
    ("size", "size"),
)


def _infer_type(data: Dict[str, Any]) -> Optional[str]:
    for key, message_type in _LEGACY_KEYS:
        if data.get(key):
            return message_type
    return None


def parse_inbound(raw: Any) -> Optional[Envelope]:
    """Decode a message from the viewer, or ``None`` if it is not for us."""
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Ignoring non-JSON message")
            return None
    else:
        data = raw
    if not isinstance(data, dict) or data.get("source") != VIEWER_SOURCE:
        return None

    if "type" not in data:
        inferred = _infer_type(data)
        if inferred is None:
            return None
        data = {**data, "type": inferred}

    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as exc:
        logger.debug("Ignoring malformed %r message: %s", data.get("type"), exc)
        return None


def dump(message: Envelope) -> str:
    return message.model_dump_json(by_alias=True)
