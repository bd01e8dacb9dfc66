from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .client import BackendClient
from .errors import DocsToFieldsError
from .fields import FieldModel
from .models import (
    ClassifierSpec,
    ClientSettings,
    DocumentFile,
    DocumentRecord,
    FieldSpec,
    Model,
    ViewerOptions,
)
from .pipeline import ExtractionPipeline, FileEventHook
from .registry import DocumentRegistry
from .viewer import KeyValueStore, ViewerCallback, ViewerSession, ViewerSyncChannel, WindowHost

logger = logging.getLogger(__name__)


class DocsToFields:
    """Extracts declared fields, or a classification label, from documents.

    Example::

        docs = DocsToFields(ClientSettings(auth_key="key", url="http://localhost:3000"))
        docs.add_field({"name": "name", "description": "Name of the person"})
        docs.add_file(DocumentFile.from_path("contract.pdf"))
        fields = await docs.get_fields()
    """

    def __init__(
        self,
        settings: Union[ClientSettings, Mapping[str, Any], None] = None,
        *,
        backend: Optional[BackendClient] = None,
        window_host: Optional[WindowHost] = None,
        store: Optional[KeyValueStore] = None,
        file_event: Optional[FileEventHook] = None,
        viewer_callback: Optional[ViewerCallback] = None,
    ) -> None:
        if settings is None:
            settings = ClientSettings()
        elif not isinstance(settings, ClientSettings):
            settings = ClientSettings.model_validate(settings)
        self.settings = settings
        self.registry = DocumentRegistry()
        self.field_model = FieldModel(settings.fields)
        self.backend = backend or BackendClient(settings)
        self.pipeline = ExtractionPipeline(
            self.registry, self.field_model, settings, self.backend, file_event=file_event
        )
        self.viewer: Optional[ViewerSyncChannel] = None
        if window_host is not None:
            self.viewer = ViewerSyncChannel(
                self.registry,
                self.field_model,
                settings,
                window_host,
                store=store,
                auto_open_callback=viewer_callback,
            )
        self.extracted_fields: Any = None

    # settings

    def set_auth_key(self, auth_key: str) -> None:
        self.settings.auth_key = auth_key

    def set_system_prompt(self, system_prompt: Optional[str]) -> None:
        self.settings.system_prompt = system_prompt

    def set_prompt(self, prompt: Optional[str]) -> None:
        self.settings.prompt = prompt

    def set_model(self, model: Union[Model, str, None]) -> None:
        self.settings.model = model.value if isinstance(model, Model) else model

    def set_enable_textract(self, enable_textract: bool) -> None:
        self.settings.enable_textract = enable_textract

    def set_classifier_prompt(self, classifier_prompt: Optional[str]) -> None:
        self.settings.classifier_prompt = classifier_prompt

    # fields and documents

    def set_classifiers(self, classifiers: Mapping[str, Union[ClassifierSpec, Mapping[str, Any]]]) -> None:
        self.field_model.set_classifiers(classifiers)

    def add_field(self, field: Union[FieldSpec, Mapping[str, Any]]) -> None:
        self.field_model.add_field(field)

    def clear_fields(self) -> None:
        self.field_model.clear_fields()

    def add_file(
        self,
        file: DocumentFile,
        text: Optional[str] = None,
        blocks: Optional[List[Dict[str, Any]]] = None,
    ) -> DocumentRecord:
        return self.registry.add(file, text, blocks)

    def clear_files(self) -> None:
        self.registry.clear()

    def get_files(self) -> Sequence[DocumentRecord]:
        return self.registry.all()

    # extraction

    async def file_extract_text(self, file: DocumentFile) -> str:
        return await self.pipeline.extract_text(file)

    async def drop_files(self, files: Iterable[DocumentFile]) -> None:
        """Extract text for every dropped file; failures are logged, never raised."""
        self.extracted_fields = None
        handles = list(files)
        outcomes = await asyncio.gather(
            *(self.pipeline.extract_text(handle) for handle in handles),
            return_exceptions=True,
        )
        for handle, outcome in zip(handles, outcomes):
            if isinstance(outcome, DocsToFieldsError):
                logger.warning("Could not extract text from %s: %s", handle.name, outcome)
            elif isinstance(outcome, BaseException):
                raise outcome

    async def process(self, prompt: str, classify: bool = False) -> Any:
        return await self.pipeline.process(prompt, is_classification=classify)

    async def get_fields(self) -> Any:
        result = await self.pipeline.get_fields()
        self.extracted_fields = result
        if self.viewer is not None:
            self.viewer.publish_result(result)
        return result

    async def classify(self) -> Dict[str, Any]:
        return await self.pipeline.classify()

    # viewer

    def view_file(
        self,
        show_fields: bool = True,
        send_file: bool = False,
        callback: Optional[ViewerCallback] = None,
    ) -> ViewerSession:
        if self.viewer is None:
            raise RuntimeError("No window host configured; pass window_host to open the viewer")
        return self.viewer.open(ViewerOptions(show_fields=show_fields, send_file=send_file, callback=callback))

    def close_viewer(self) -> None:
        if self.viewer is not None:
            self.viewer.close()
