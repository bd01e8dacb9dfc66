from __future__ import annotations

import pytest

from docstofields.fields import FieldModel
from docstofields.models import ClientSettings
from docstofields.pipeline import ExtractionPipeline
from docstofields.registry import DocumentRegistry
from docstofields.viewer import MemoryStore, ViewerSyncChannel

from .fakes import FakeBackend, FakeHost


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(auth_key="test-key", url="http://backend.test")


@pytest.fixture
def registry() -> DocumentRegistry:
    return DocumentRegistry()


@pytest.fixture
def field_model() -> FieldModel:
    return FieldModel()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def pipeline(registry, field_model, settings, backend) -> ExtractionPipeline:
    return ExtractionPipeline(registry, field_model, settings, backend)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def channel(registry, field_model, settings, host, store) -> ViewerSyncChannel:
    return ViewerSyncChannel(registry, field_model, settings, host, store=store)
