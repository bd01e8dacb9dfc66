from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Sequence

from .errors import RegistryDesyncError
from .models import DocumentFile, DocumentRecord


class DocumentRegistry:
    """Ordered collection of documents and their extracted text.

    Position is the join key with the backend: the i-th file the backend
    returns belongs to the i-th record here.
    """

    def __init__(self) -> None:
        self._records: List[DocumentRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[DocumentRecord]:
        return iter(self._records)

    def add(
        self,
        handle: DocumentFile,
        text: Optional[str] = None,
        blocks: Optional[List[Dict[str, Any]]] = None,
    ) -> DocumentRecord:
        record = DocumentRecord(handle=handle, text=text, blocks=blocks)
        self._records.append(record)
        return record

    def clear(self) -> None:
        self._records = []

    def all(self) -> Sequence[DocumentRecord]:
        return self._records

    def first(self) -> Optional[DocumentRecord]:
        return self._records[0] if self._records else None

    def index_of(self, handle: DocumentFile) -> int:
        for index, record in enumerate(self._records):
            if record.handle is handle:
                return index
        return -1

    def find(self, handle: DocumentFile) -> Optional[DocumentRecord]:
        index = self.index_of(handle)
        return self._records[index] if index >= 0 else None

    def find_by_name(self, name: str) -> Optional[DocumentRecord]:
        return next((record for record in self._records if record.name == name), None)

    def replace_text_at(
        self,
        index: int,
        text: Optional[str],
        blocks: Optional[List[Dict[str, Any]]] = None,
    ) -> DocumentRecord:
        if not 0 <= index < len(self._records):
            raise RegistryDesyncError(
                f"No document at position {index}; registry holds {len(self._records)}"
            )
        record = self._records[index]
        record.text = text
        if blocks is not None:
            record.blocks = blocks
        return record
