from .errors import (
    CompletionBackendError,
    DecodeError,
    DocsToFieldsError,
    EmptyTextError,
    ExtractionBackendError,
    NoFieldsError,
    ParseError,
    ReadError,
    RegistryDesyncError,
    RegistryMismatchError,
)
from .fields import FieldModel
from .models import (
    AIConfig,
    ClassifierSpec,
    ClientSettings,
    DocumentFile,
    DocumentRecord,
    EncodedFile,
    FieldSpec,
    LabelSpec,
    Model,
)
from .orchestrator import DocsToFields
from .pipeline import ExtractionPipeline
from .registry import DocumentRegistry
from .viewer import JsonFileStore, ViewerState, ViewerSyncChannel

__all__ = [
    "AIConfig",
    "ClassifierSpec",
    "ClientSettings",
    "CompletionBackendError",
    "DecodeError",
    "DocsToFields",
    "DocsToFieldsError",
    "DocumentFile",
    "DocumentRecord",
    "DocumentRegistry",
    "EmptyTextError",
    "EncodedFile",
    "ExtractionBackendError",
    "ExtractionPipeline",
    "FieldModel",
    "FieldSpec",
    "JsonFileStore",
    "LabelSpec",
    "Model",
    "NoFieldsError",
    "ParseError",
    "ReadError",
    "RegistryDesyncError",
    "RegistryMismatchError",
    "ViewerState",
    "ViewerSyncChannel",
]
