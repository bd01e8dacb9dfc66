"""Secondary viewer window kept in sync with the client through messages.

A session moves ``CLOSED -> OPENING -> OPEN`` and back to ``CLOSED`` on
teardown. ``OPENING`` lasts from the moment the window is opened until the
viewer's ``init`` message has been answered; results published in that
window of time are held on the session and delivered with the handshake.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union

from pydantic import BaseModel, ValidationError

from . import codec
from .errors import DocsToFieldsError
from .fields import FieldModel
from .messages import (
    Envelope,
    ExtractedFieldsMessage,
    FieldsMessage,
    FieldValuesMessage,
    FileMessage,
    InitMessage,
    KeyMessage,
    LocationMessage,
    SettingsMessage,
    ShowFieldsMessage,
    SizeMessage,
    ViewerSettings,
    dump,
    parse_inbound,
)
from .models import ClientSettings, ViewerOptions, WindowGeometry, WindowLocation, WindowSize
from .registry import DocumentRegistry

logger = logging.getLogger(__name__)

LOCATION_KEY = "doc2fields-viewer-location"
SIZE_KEY = "doc2fields-viewer-size"
DEFAULT_WIDTH_RATIO = 0.75

ViewerCallback = Callable[[Dict[str, Any]], Any]
MessageListener = Callable[[Any], Awaitable[None]]


class ViewerWindow(Protocol):
    def post_message(self, message: str) -> None: ...

    def close(self) -> None: ...

    def focus(self) -> None: ...


@dataclass
class ScreenMetrics:
    avail_width: float
    avail_height: float
    screen_x: float = 0.0
    screen_y: float = 0.0


class WindowHost(Protocol):
    """The platform that opens windows and delivers their messages."""

    def screen(self) -> ScreenMetrics: ...

    def open_window(self, url: str, geometry: WindowGeometry) -> ViewerWindow: ...

    def add_message_listener(self, listener: MessageListener) -> None: ...

    def remove_message_listener(self, listener: MessageListener) -> None: ...


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """Key-value store persisted as one JSON object on disk."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable store at %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=True, indent=2), encoding="utf-8")


class ViewerState(str, Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"


@dataclass
class ViewerSession:
    window: ViewerWindow
    show_fields: bool = True
    send_file: bool = False
    callback: Optional[ViewerCallback] = None
    pending_result: Any = None
    state: ViewerState = ViewerState.OPENING


class ViewerSyncChannel:
    def __init__(
        self,
        registry: DocumentRegistry,
        field_model: FieldModel,
        settings: ClientSettings,
        host: WindowHost,
        store: Optional[KeyValueStore] = None,
        auto_open_callback: Optional[ViewerCallback] = None,
    ) -> None:
        self.registry = registry
        self.field_model = field_model
        self.settings = settings
        self.host = host
        self.store = store if store is not None else MemoryStore()
        self.auto_open_callback = auto_open_callback
        self.session: Optional[ViewerSession] = None
        # one bound listener for the lifetime of the channel
        self._listener: MessageListener = self.handle_message
        self._listening = False
        self._handlers: Dict[str, Callable[[Any], Awaitable[None]]] = {
            "init": self._on_init,
            "extractedFields": self._on_extracted_fields,
            "file": self._on_file,
            "location": self._on_location,
            "size": self._on_size,
        }

    @property
    def state(self) -> ViewerState:
        return self.session.state if self.session is not None else ViewerState.CLOSED

    def _attach(self) -> None:
        if not self._listening:
            self.host.add_message_listener(self._listener)
            self._listening = True

    def _detach(self) -> None:
        if self._listening:
            self.host.remove_message_listener(self._listener)
            self._listening = False

    def close(self) -> None:
        session = self.session
        if session is None:
            return
        self.session = None
        self._detach()
        session.window.close()
        logger.info("Closed viewer window")

    def _read_stored(self, key: str, model: type[BaseModel]) -> Optional[Any]:
        raw = self.store.get(key)
        if not raw:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            logger.warning("Ignoring invalid stored viewer %s", key)
            return None

    def restore_geometry(self) -> WindowGeometry:
        screen = self.host.screen()
        width = screen.avail_width * DEFAULT_WIDTH_RATIO
        height = screen.avail_height
        x = screen.screen_x + screen.avail_width - width
        y = screen.screen_y

        location = self._read_stored(LOCATION_KEY, WindowLocation)
        if location is not None:
            x, y = location.x, location.y
        size = self._read_stored(SIZE_KEY, WindowSize)
        if size is not None:
            width, height = size.width, size.height
        return WindowGeometry(x=x, y=y, width=width, height=height)

    def open(self, options: Optional[ViewerOptions] = None, pending_result: Any = None) -> ViewerSession:
        options = options or ViewerOptions()
        self.close()

        geometry = self.restore_geometry()
        window = self.host.open_window(self.settings.viewer_url, geometry)
        self.session = ViewerSession(
            window=window,
            show_fields=options.show_fields,
            send_file=options.send_file,
            callback=options.callback,
            pending_result=pending_result,
        )
        self._attach()
        window.focus()
        logger.info("Opened viewer at %s (%s)", self.settings.viewer_url, geometry.to_features())
        return self.session

    def _send(self, session: ViewerSession, message: Envelope) -> None:
        session.window.post_message(dump(message))

    def _field_values(self, result: Any) -> FieldValuesMessage:
        first = self.registry.first()
        blocks = (first.blocks or []) if first is not None else []
        return FieldValuesMessage(field_values=result, blocks=blocks)

    def publish_result(self, result: Any) -> None:
        """Deliver an extraction result to the viewer, now or after its handshake."""
        session = self.session
        if session is not None and session.state is ViewerState.OPEN:
            self._send(session, self._field_values(result))
        elif session is not None:
            session.pending_result = result
        elif self.settings.auto_open_viewer and len(self.registry) > 0:
            self.open(
                ViewerOptions(show_fields=True, send_file=True, callback=self.auto_open_callback),
                pending_result=result,
            )

    async def handle_message(self, raw: Any) -> None:
        message = parse_inbound(raw)
        if message is None:
            return
        handler = self._handlers.get(getattr(message, "type", ""))
        if handler is not None:
            await handler(message)

    async def _notify(self, session: ViewerSession, payload: Dict[str, Any]) -> None:
        if session.callback is None:
            return
        try:
            outcome = session.callback(payload)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Viewer callback failed")

    async def _on_init(self, message: InitMessage) -> None:
        session = self.session
        if session is None:
            return

        self._send(session, ShowFieldsMessage(show_fields=session.show_fields))
        self._send(session, FieldsMessage(fields=self.field_model.fields))
        self._send(session, KeyMessage(key=self.settings.auth_key))
        self._send(
            session,
            SettingsMessage(
                settings=ViewerSettings(
                    model=self.settings.model,
                    enable_textract=self.settings.enable_textract,
                    prompt=self.settings.prompt,
                    system_prompt=self.settings.system_prompt,
                    classifier_prompt=self.settings.classifier_prompt,
                    classifiers=self.field_model.classifiers_payload() or None,
                )
            ),
        )

        first = self.registry.first()
        if first is not None and session.send_file:
            try:
                encoded = await codec.encode(first.handle)
            except DocsToFieldsError as exc:
                logger.warning("Could not send %s to viewer: %s", first.name, exc)
            else:
                if self.session is session:
                    self._send(session, FileMessage(file=encoded))
            if self.session is not session:
                return

        if session.pending_result is not None:
            result, session.pending_result = session.pending_result, None
            self._send(session, self._field_values(result))
        session.state = ViewerState.OPEN

    async def _on_extracted_fields(self, message: ExtractedFieldsMessage) -> None:
        if self.session is not None:
            await self._notify(self.session, {"fields": message.extracted_fields})

    async def _on_file(self, message: FileMessage) -> None:
        try:
            file = codec.decode(message.file)
        except DocsToFieldsError as exc:
            logger.warning("Ignoring file from viewer: %s", exc)
            return
        if self.registry.find_by_name(file.name) is not None:
            return
        self.registry.add(file, message.text)
        if self.session is not None:
            await self._notify(self.session, {"file": file})

    async def _on_location(self, message: LocationMessage) -> None:
        self.store.set(LOCATION_KEY, message.location.model_dump_json())
        if message.size is not None:
            self.store.set(SIZE_KEY, message.size.model_dump_json())

    async def _on_size(self, message: SizeMessage) -> None:
        self.store.set(SIZE_KEY, message.size.model_dump_json())
