import pytest

from src.repurposing.config import settings
from src.repurposing.infra.db import inmemory
from tests.repurposing.helpers import WEBHOOK_KEY


@pytest.fixture(autouse=True)
def fresh_pipeline_state(monkeypatch):
    """Give every test fresh repositories (seeded registries only) and predictable settings."""

    inmemory.reset_repositories()
    monkeypatch.setattr(settings, "enable_api_auth", False)
    monkeypatch.setattr(settings, "webhook_api_key", WEBHOOK_KEY)
    monkeypatch.setattr(settings, "generation_backend", "demo")
    monkeypatch.setattr(settings, "translation_backend", "demo")
    yield
    inmemory.reset_repositories()
