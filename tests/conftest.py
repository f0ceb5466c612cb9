from __future__ import annotations

import pytest

from classconnect.api import password_hasher


@pytest.fixture(autouse=True)
def _fast_password_hashing(monkeypatch):
    monkeypatch.setattr(password_hasher, "DEFAULT_ITERATIONS", 1000)
