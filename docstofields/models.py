from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Model(str, Enum):
    """Model identifiers accepted by the completion backend."""

    OPENAI_GPT_4_TURBO = "openai_gpt-4-turbo"
    OPENAI_GPT_4O = "openai_gpt-4o"
    OPENAI_GPT_4 = "openai_gpt-4"
    OPENAI_GPT_3_5_TURBO = "openai_gpt-3.5-turbo"
    BEDROCK_ANTHROPIC_CLAUDE_V2 = "bedrock_anthropic.claude-v2"
    BEDROCK_META_LLAMA3_70B = "bedrock_meta.llama3-70b-instruct-v1:0"
    BEDROCK_META_LLAMA3_8B = "bedrock_meta.llama3-8b-instruct-v1:0"
    BEDROCK_ANTHROPIC_CLAUDE_HAIKU = "bedrock_anthropic.claude-3-haiku-20240307-v1:0"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FieldSpec(BaseModel):
    name: str
    description: Optional[str] = None


class LabelSpec(BaseModel):
    name: str
    description: Optional[str] = None


class ClassifierSpec(BaseModel):
    """A classification label plus whatever metadata the caller binds to it."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    description: Optional[str] = None


class LayoutBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    page: int
    text: str = ""
    x0: float
    y0: float
    x1: float
    y1: float
    page_width: float
    page_height: float


class EncodedFile(BaseModel):
    """Transport-safe file: the payload is a ``data:<mime>;base64,`` URL."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    payload: str = Field(alias="base64")


@dataclass(eq=False)
class DocumentFile:
    """Opaque handle to a document's bytes, held in memory or on disk.

    Handles compare by identity so two uploads of the same name stay distinct
    records in the registry.
    """

    name: str
    content: Optional[bytes] = None
    path: Optional[Path] = None
    mime_type: str = ""

    @classmethod
    def from_path(cls, path: Union[str, Path], mime_type: Optional[str] = None) -> "DocumentFile":
        file_path = Path(path)
        guessed = mime_type or mimetypes.guess_type(file_path.name)[0] or ""
        return cls(name=file_path.name, path=file_path, mime_type=guessed)


@dataclass
class DocumentRecord:
    handle: DocumentFile
    text: Optional[str] = None
    blocks: Optional[List[Dict[str, Any]]] = None

    @property
    def name(self) -> str:
        return self.handle.name


class WindowLocation(BaseModel):
    x: float
    y: float


class WindowSize(BaseModel):
    width: float
    height: float


class WindowGeometry(BaseModel):
    x: float
    y: float
    width: float
    height: float

    def to_features(self) -> str:
        return (
            f"width={self.width:g},height={self.height:g},left={self.x:g},top={self.y:g},"
            "location=no,menubar=no,toolbar=no,status=no,scrollbars=yes,resizable=yes"
        )


class AIConfig(_CamelModel):
    """Provider routing data forwarded with every completion request."""

    provider: str = "openai"
    azure_endpoint: Optional[str] = None
    azure_deployment: Optional[str] = None
    azure_api_version: Optional[str] = None


class ClientSettings(_CamelModel):
    auth_key: Optional[str] = None
    url: str = "http://localhost:3000"
    viewer_url: str = "/viewer"
    model: Optional[str] = None
    enable_textract: bool = False
    prompt: Optional[str] = None
    system_prompt: Optional[str] = None
    classifier_prompt: Optional[str] = None
    auto_open_viewer: bool = False
    ai_config: Optional[AIConfig] = None
    fields: List[FieldSpec] = Field(default_factory=list)


class DocumentPayload(BaseModel):
    """One document as sent to, and echoed back by, the ``/extract`` endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    text: Optional[str] = None
    blocks: Optional[List[Dict[str, Any]]] = None
    payload: Optional[str] = Field(default=None, alias="base64")


class CompletionRequest(_CamelModel):
    prompt: str
    system_prompt: str
    fields: List[FieldSpec] = Field(default_factory=list)
    labels: List[LabelSpec] = Field(default_factory=list)
    files: List[DocumentPayload] = Field(default_factory=list)
    model: Optional[str] = None
    enable_textract: bool = False
    ai_config: Optional[AIConfig] = None
    # prompt already carries the documents, fields and labels
    rendered: bool = False


class ExtractTextRequest(_CamelModel):
    file: Optional[EncodedFile] = None
    enable_textract: bool = False


class ExtractTextResponse(BaseModel):
    text: str
    blocks: List[LayoutBlock] = Field(default_factory=list)
    pages: int


class ExtractResponse(BaseModel):
    text: str
    files: List[DocumentPayload] = Field(default_factory=list)


class ProviderConfigResponse(_CamelModel):
    provider: str
    model: str
    azure_endpoint: str
    azure_deployment: str
    azure_api_version: str


@dataclass
class ViewerOptions:
    show_fields: bool = True
    send_file: bool = False
    callback: Optional[Any] = None
