from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Union

from docstofields.models import CompletionRequest, EncodedFile, WindowGeometry
from docstofields.viewer import ScreenMetrics


class FakeBackend:
    """Stands in for BackendClient; records every request."""

    def __init__(
        self,
        texts: Optional[Dict[str, str]] = None,
        completion: Union[Dict[str, Any], Callable[[CompletionRequest], Dict[str, Any]], None] = None,
        extract_error: Optional[Exception] = None,
        complete_error: Optional[Exception] = None,
    ) -> None:
        self.texts = texts or {}
        self.completion = completion if completion is not None else {"text": "{}"}
        self.extract_error = extract_error
        self.complete_error = complete_error
        self.extract_calls: List[EncodedFile] = []
        self.complete_calls: List[CompletionRequest] = []

    async def extract_text(self, encoded: EncodedFile, enable_textract: bool = False) -> Dict[str, Any]:
        self.extract_calls.append(encoded)
        if self.extract_error is not None:
            raise self.extract_error
        text = self.texts.get(encoded.name, "")
        return {"text": text, "blocks": [{"page": 0, "text": text}], "pages": 1}

    async def complete(self, request: CompletionRequest) -> Dict[str, Any]:
        self.complete_calls.append(request)
        if self.complete_error is not None:
            raise self.complete_error
        if callable(self.completion):
            return self.completion(request)
        return self.completion


class FakeWindow:
    def __init__(self, url: str, geometry: WindowGeometry) -> None:
        self.url = url
        self.geometry = geometry
        self.posted: List[str] = []
        self.closed = False
        self.focused = False

    def post_message(self, message: str) -> None:
        self.posted.append(message)

    def close(self) -> None:
        self.closed = True

    def focus(self) -> None:
        self.focused = True

    @property
    def messages(self) -> List[Dict[str, Any]]:
        return [json.loads(message) for message in self.posted]

    def types(self) -> List[str]:
        return [message["type"] for message in self.messages]


class FakeHost:
    def __init__(self, metrics: Optional[ScreenMetrics] = None) -> None:
        self.metrics = metrics or ScreenMetrics(avail_width=1600, avail_height=900)
        self.windows: List[FakeWindow] = []
        self.listeners: List[Any] = []

    def screen(self) -> ScreenMetrics:
        return self.metrics

    def open_window(self, url: str, geometry: WindowGeometry) -> FakeWindow:
        window = FakeWindow(url, geometry)
        self.windows.append(window)
        return window

    def add_message_listener(self, listener: Any) -> None:
        self.listeners.append(listener)

    def remove_message_listener(self, listener: Any) -> None:
        self.listeners.remove(listener)

    async def deliver(self, message: Union[str, Dict[str, Any]]) -> None:
        raw = message if isinstance(message, str) else json.dumps(message)
        for listener in list(self.listeners):
            await listener(raw)


def viewer_message(message_type: str, **payload: Any) -> Dict[str, Any]:
    return {"type": message_type, "source": "doc2fields-viewer", **payload}
