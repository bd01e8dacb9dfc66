from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from . import codec
from .client import BackendClient
from .errors import (
    DocsToFieldsError,
    EmptyTextError,
    ExtractionBackendError,
    NoFieldsError,
    ParseError,
    RegistryMismatchError,
)
from .fields import FieldModel, not_found
from .models import ClientSettings, CompletionRequest, DocumentFile, DocumentPayload, DocumentRecord
from .prompts import (
    DEFAULT_CLASSIFIER_PROMPT,
    DEFAULT_EXTRACTION_PROMPT,
    DEFAULT_SYSTEM_PROMPT,
    render_instruction,
)
from .registry import DocumentRegistry

logger = logging.getLogger(__name__)

FileEventHook = Callable[[str, Optional[DocumentFile]], Any]
_payloads_adapter: TypeAdapter = TypeAdapter(List[DocumentPayload])


class ExtractionPipeline:
    """Resolves document text, builds the instruction and reconciles results.

    Documents that already carry text are sent as-is, so text extracted once
    is reused by every later extraction or classification pass.
    """

    def __init__(
        self,
        registry: DocumentRegistry,
        field_model: FieldModel,
        settings: ClientSettings,
        backend: BackendClient,
        file_event: Optional[FileEventHook] = None,
    ) -> None:
        self.registry = registry
        self.field_model = field_model
        self.settings = settings
        self.backend = backend
        self.file_event = file_event
        self.last_result: Any = None

    def _notify(self, phase: str, file: Optional[DocumentFile] = None) -> None:
        if self.file_event is None:
            return
        try:
            self.file_event(phase, file)
        except Exception:
            logger.exception("file_event hook failed during %r", phase)

    async def _fetch_text(self, handle: DocumentFile) -> Dict[str, Any]:
        encoded = await codec.encode(handle)
        response = await self.backend.extract_text(encoded, self.settings.enable_textract)
        if not isinstance(response.get("text"), str):
            raise ExtractionBackendError(f"Extraction response for {handle.name} carried no text")
        return response

    async def extract_text(self, handle: DocumentFile) -> str:
        record = self.registry.find(handle)
        if record is not None and record.text:
            return record.text

        self._notify("start", handle)
        try:
            response = await self._fetch_text(handle)
        except DocsToFieldsError:
            self._notify("error", handle)
            raise

        text: str = response["text"]
        blocks = response.get("blocks") or []
        index = self.registry.index_of(handle)
        if index < 0:
            self.registry.add(handle, text, blocks)
        else:
            self.registry.replace_text_at(index, text, blocks)
        self._notify("done", handle)

        if not text.strip():
            raise EmptyTextError(f"No text extracted from file {handle.name}")
        return text

    async def _resolve(self, record: DocumentRecord) -> DocumentPayload:
        if record.text:
            return DocumentPayload(name=record.name, text=record.text, blocks=record.blocks)
        response = await self._fetch_text(record.handle)
        return DocumentPayload(name=record.name, text=response["text"], blocks=response.get("blocks") or [])

    def _reconcile(self, files: List[Any], sent: int) -> None:
        if len(files) != sent:
            raise RegistryMismatchError(
                f"Backend returned {len(files)} file(s) for {sent} document(s) sent"
            )
        try:
            entries = _payloads_adapter.validate_python(files)
        except ValidationError as exc:
            raise ParseError(f"Completion response carried malformed files: {exc}") from exc
        for index, entry in enumerate(entries):
            self.registry.replace_text_at(index, entry.text, entry.blocks)

    async def process(self, template: str, is_classification: bool = False) -> Any:
        if not is_classification and not self.field_model.fields:
            raise NoFieldsError("No fields to extract - Specify one field")

        records = list(self.registry.all())
        documents = await asyncio.gather(*(self._resolve(record) for record in records))

        fields = [] if is_classification else list(self.field_model.fields)
        labels = list(self.field_model.labels) if is_classification else []
        instruction = render_instruction(
            template,
            [(document.name, document.text or "") for document in documents],
            fields=fields,
            labels=labels,
        )
        request = CompletionRequest(
            prompt=instruction,
            system_prompt=self.settings.system_prompt or DEFAULT_SYSTEM_PROMPT,
            fields=fields,
            labels=labels,
            files=list(documents),
            model=self.settings.model,
            enable_textract=self.settings.enable_textract,
            ai_config=self.settings.ai_config,
            rendered=True,
        )
        response = await self.backend.complete(request)

        files = response.get("files")
        if isinstance(files, list):
            self._reconcile(files, len(records))

        text = response.get("text")
        if not isinstance(text, str):
            raise ParseError("Completion response carried no text")
        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Completion text is not valid JSON: %s", exc)
            raise ParseError(f"Completion text is not valid JSON: {exc}") from exc

        self.last_result = result
        return result

    async def get_fields(self) -> Any:
        return await self.process(self.settings.prompt or DEFAULT_EXTRACTION_PROMPT)

    async def classify(self) -> Dict[str, Any]:
        result = await self.process(
            self.settings.classifier_prompt or DEFAULT_CLASSIFIER_PROMPT,
            is_classification=True,
        )
        label = result.get("document_label") if isinstance(result, dict) else None
        if label is None:
            return not_found()
        label = str(label)
        classifier = self.field_model.lookup_classifier(label)
        if classifier is None:
            logger.info("No classifier matches label %r", label)
            return not_found()
        return {**classifier.model_dump(exclude_none=True), "label": label}
