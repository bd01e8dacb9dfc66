from __future__ import annotations

import base64
import json

import pytest

from docstofields.models import DocumentFile, FieldSpec, ViewerOptions
from docstofields.viewer import (
    LOCATION_KEY,
    SIZE_KEY,
    JsonFileStore,
    ViewerState,
    ViewerSyncChannel,
)

from .fakes import FakeHost, viewer_message


def _pdf(name: str = "a.pdf", content: bytes = b"%PDF-1.4 body") -> DocumentFile:
    return DocumentFile(name=name, content=content, mime_type="application/pdf")


def _data_url(content: bytes, mime: str = "application/pdf") -> str:
    return f"data:{mime};base64," + base64.b64encode(content).decode("ascii")


@pytest.mark.asyncio
async def test_handshake_sends_configuration_in_order(channel, host, registry, field_model, settings) -> None:
    settings.model = "openai_gpt-4o"
    settings.system_prompt = "system"
    field_model.add_field(FieldSpec(name="total", description="Invoice total"))
    field_model.set_classifiers({"Invoice": {"description": "A bill"}})
    registry.add(_pdf(), text="text", blocks=[{"page": 0, "text": "text"}])

    channel.open(ViewerOptions(show_fields=False, send_file=True))
    assert channel.state is ViewerState.OPENING
    await host.deliver(viewer_message("init"))

    window = host.windows[0]
    assert window.types() == ["showFields", "fields", "key", "settings", "file"]
    show, fields, key, config, file = window.messages
    assert all(message["source"] == "docstofields" for message in window.messages)
    assert show["showFields"] is False
    assert fields["fields"] == [{"name": "total", "description": "Invoice total"}]
    assert key["key"] == "test-key"
    assert config["settings"]["model"] == "openai_gpt-4o"
    assert config["settings"]["systemPrompt"] == "system"
    assert config["settings"]["enableTextract"] is False
    assert config["settings"]["classifiers"]["Invoice"]["description"] == "A bill"
    assert file["file"] == {"name": "a.pdf", "base64": _data_url(b"%PDF-1.4 body")}
    assert channel.state is ViewerState.OPEN


@pytest.mark.asyncio
async def test_handshake_without_result_sends_no_field_values(channel, host, registry) -> None:
    registry.add(_pdf(), text="text")

    channel.open()
    await host.deliver(viewer_message("init"))

    assert host.windows[0].types() == ["showFields", "fields", "key", "settings"]


@pytest.mark.asyncio
async def test_result_published_while_opening_is_delivered_once(channel, host, registry) -> None:
    registry.add(_pdf(), text="text", blocks=[{"page": 0, "text": "Total"}])
    session = channel.open()

    channel.publish_result({"total": "10"})
    await host.deliver(viewer_message("init"))
    await host.deliver(viewer_message("init"))

    window = host.windows[0]
    values = [message for message in window.messages if message["type"] == "fieldValues"]
    assert len(values) == 1
    assert values[0]["fieldValues"] == {"total": "10"}
    assert values[0]["blocks"] == [{"page": 0, "text": "Total"}]
    assert window.types().index("fieldValues") == 4
    assert session.pending_result is None


def test_result_published_while_open_is_sent_immediately(channel, host, registry) -> None:
    registry.add(_pdf(), text="text")
    session = channel.open()
    session.state = ViewerState.OPEN

    channel.publish_result({"total": "10"})

    assert host.windows[0].types() == ["fieldValues"]


def test_result_without_viewer_is_dropped_unless_auto_open(channel, host, registry, settings) -> None:
    registry.add(_pdf(), text="text")

    channel.publish_result({"total": "10"})
    assert host.windows == []

    settings.auto_open_viewer = True
    channel.publish_result({"total": "10"})

    assert len(host.windows) == 1
    assert channel.session.send_file is True
    assert channel.session.show_fields is True
    assert channel.session.pending_result == {"total": "10"}


def test_auto_open_needs_documents(channel, host, settings) -> None:
    settings.auto_open_viewer = True

    channel.publish_result({"total": "10"})

    assert host.windows == []


@pytest.mark.asyncio
async def test_reopen_replaces_session_and_listener(channel, host) -> None:
    first = channel.open()
    second = channel.open()

    assert first.window.closed is True
    assert channel.session is second
    assert len(host.listeners) == 1

    await host.deliver(viewer_message("init"))

    assert first.window.posted == []
    assert len([t for t in second.window.types() if t == "showFields"]) == 1


def test_close_detaches_listener(channel, host) -> None:
    channel.open()
    channel.close()

    assert host.listeners == []
    assert host.windows[0].closed is True
    assert channel.state is ViewerState.CLOSED
    channel.close()


def test_default_geometry_is_right_anchored(channel, host) -> None:
    channel.open()

    geometry = host.windows[0].geometry
    assert (geometry.x, geometry.y, geometry.width, geometry.height) == (400, 0, 1200, 900)
    assert host.windows[0].url == "/viewer"
    assert host.windows[0].focused is True


@pytest.mark.asyncio
async def test_location_and_size_are_persisted_and_restored(channel, host, store) -> None:
    channel.open()
    await host.deliver(
        viewer_message("location", location={"x": 10, "y": 20}, size={"width": 800, "height": 600})
    )
    assert json.loads(store.get(LOCATION_KEY)) == {"x": 10, "y": 20}

    await host.deliver(viewer_message("size", size={"width": 640, "height": 480}))
    assert json.loads(store.get(SIZE_KEY)) == {"width": 640, "height": 480}

    channel.open()
    geometry = host.windows[-1].geometry
    assert (geometry.x, geometry.y, geometry.width, geometry.height) == (10, 20, 640, 480)


def test_corrupt_stored_geometry_falls_back_to_default(channel, host, store) -> None:
    store.set(LOCATION_KEY, "not json")

    channel.open()

    assert host.windows[0].geometry.x == 400


@pytest.mark.asyncio
async def test_file_from_viewer_is_added_once(registry, field_model, settings, host, store) -> None:
    received = []
    channel = ViewerSyncChannel(registry, field_model, settings, host, store=store)
    channel.open(ViewerOptions(callback=received.append))
    message = viewer_message(
        "file", file={"name": "new.pdf", "base64": _data_url(b"new bytes")}, text="new text"
    )

    await host.deliver(message)
    await host.deliver(message)

    assert len(registry) == 1
    record = registry.first()
    assert record.name == "new.pdf"
    assert record.text == "new text"
    assert record.handle.content == b"new bytes"
    assert len(received) == 1
    assert received[0]["file"] is record.handle


@pytest.mark.asyncio
async def test_extracted_fields_reach_async_callback(channel, host) -> None:
    received = []

    async def callback(payload):
        received.append(payload)

    channel.open(ViewerOptions(callback=callback))
    await host.deliver(viewer_message("extractedFields", extractedFields={"total": "5"}))

    assert received == [{"fields": {"total": "5"}}]


@pytest.mark.asyncio
async def test_failing_callback_is_contained(channel, host) -> None:
    def callback(payload):
        raise RuntimeError("consumer broke")

    channel.open(ViewerOptions(callback=callback))
    await host.deliver(viewer_message("extractedFields", extractedFields={}))


@pytest.mark.asyncio
async def test_foreign_and_malformed_messages_are_ignored(channel, host, registry, store) -> None:
    channel.open()

    await host.deliver({"type": "init", "source": "someone-else"})
    await host.deliver("not json at all")
    await host.deliver(viewer_message("file", file={"name": "x.pdf"}))
    await host.deliver(viewer_message("unknown"))

    assert host.windows[0].posted == []
    assert len(registry) == 0
    assert store.get(LOCATION_KEY) is None


@pytest.mark.asyncio
async def test_unreadable_first_document_skips_file_message(channel, host, registry) -> None:
    registry.add(DocumentFile(name="missing.pdf"), text="text")

    channel.open(ViewerOptions(send_file=True))
    await host.deliver(viewer_message("init"))

    assert host.windows[0].types() == ["showFields", "fields", "key", "settings"]
    assert channel.state is ViewerState.OPEN


def test_json_file_store_round_trips_keys(tmp_path) -> None:
    path = tmp_path / "state" / "viewer.json"
    store = JsonFileStore(path)

    assert store.get(LOCATION_KEY) is None
    store.set(LOCATION_KEY, '{"x": 1, "y": 2}')
    store.set(SIZE_KEY, '{"width": 3, "height": 4}')

    reopened = JsonFileStore(path)
    assert reopened.get(LOCATION_KEY) == '{"x": 1, "y": 2}'
    assert reopened.get(SIZE_KEY) == '{"width": 3, "height": 4}'


def test_json_file_store_ignores_garbage(tmp_path) -> None:
    path = tmp_path / "viewer.json"
    path.write_text("{broken", encoding="utf-8")

    assert JsonFileStore(path).get(LOCATION_KEY) is None


def test_channel_without_store_uses_memory(registry, field_model, settings) -> None:
    channel = ViewerSyncChannel(registry, field_model, settings, FakeHost())

    assert channel.store.get(SIZE_KEY) is None
