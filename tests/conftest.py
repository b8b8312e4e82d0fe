"""Root test configuration for tlsgate.

Keeps the developer's real environment out of the suite: TLSGATE_* env vars
are cleared and the default config search paths (.tlsgate/, ~/.tlsgate/) are
disabled, so load_settings() only ever sees files a test wrote itself.
"""

import pytest


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear env overrides and the default config search paths for every test."""
    monkeypatch.delenv("TLSGATE_CONFIG", raising=False)
    monkeypatch.delenv("TLSGATE_MODE", raising=False)
    monkeypatch.setattr("tlsgate.config.DEFAULT_CONFIG_PATHS", [])
