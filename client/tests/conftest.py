"""Pytest configuration: keep hash files and settings out of the real config dir."""

import os

import pytest


@pytest.fixture(autouse=True)
def isolated_config_dir(monkeypatch, tmp_path):
    """Point SPEEDLOAD_CONFIG_DIR at a temp dir and clear other SPEEDLOAD_ env overrides."""
    for key in list(os.environ):
        if key.startswith("SPEEDLOAD_"):
            monkeypatch.delenv(key, raising=False)
    config_dir = tmp_path / "config"
    monkeypatch.setenv("SPEEDLOAD_CONFIG_DIR", str(config_dir))
    return config_dir
