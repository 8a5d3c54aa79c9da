from __future__ import annotations

import logging

import pytest

from apmgate.config.loader import ENV_OVERRIDES


@pytest.fixture(autouse=True)
def _isolate_agent_environment(monkeypatch: pytest.MonkeyPatch):
    # Keep default-config test runs deterministic regardless of the caller's shell.
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    yield
    root = logging.getLogger("apmgate")
    for handler in list(root.handlers):
        handler.close()
    root.handlers.clear()
    if hasattr(root, "_apmgate_configured"):
        delattr(root, "_apmgate_configured")
