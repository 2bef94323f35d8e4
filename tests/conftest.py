import pytest

from text_humanizer import config
from text_humanizer.db import init_db


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    db_path = tmp_path / "humanizer.db"

    monkeypatch.setattr(config.settings, "database_path", str(db_path))
    monkeypatch.setattr(config.settings, "admin_api_token", "test-admin-token")
    monkeypatch.setattr(config.settings, "humanizer_api_key", "test-api-key")
    monkeypatch.setattr(config.settings, "default_credits", 1000)

    init_db()
    yield
