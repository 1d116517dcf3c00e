from __future__ import annotations

import pytest

from fakes import FakeBackend, RecordingSleep


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()
