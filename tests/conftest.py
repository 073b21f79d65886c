from __future__ import annotations

import pytest

from automation_engine.registry.builtins import build_default_registry
from workflow_helpers import FakeProtocolClient


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def client():
    return FakeProtocolClient(handshake_values={"tok": "npub-alice"})
