from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("ATRECORD_DEFAULT_LANGS", raising=False)
    monkeypatch.delenv("ATRECORD_VERBOSE", raising=False)
    monkeypatch.chdir(tmp_path)
