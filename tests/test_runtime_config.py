"""RuntimeSettings: defaults, env overrides and fail-fast validation."""

import pytest
from pydantic import ValidationError

from surfacestream.config.runtime import McpMode, RuntimeSettings, StoreBackend, get_settings
from surfacestream.domain.impressions import ImpressionAction, ImpressionRecord
from surfacestream.domain.surfaces import DeliverableSurface, SurfaceKind, SurfaceStatus
from surfacestream.domain.visitors import VisitorRecord
from surfacestream.models.mcp_requests import EligibilityContext
from surfacestream.wiring import build_eligibility_service, memory_stores


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "MCP_MODE",
        "STORE_BACKEND",
        "DB_PATH",
        "SURFACESTREAM_DB_PATH",
        "UNTIL_COMPLETED_RESPECTS_SESSION",
        "LOG_LEVEL",
        "SEGMENT_USAGE_LIMIT",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults():
    settings = RuntimeSettings()
    assert settings.mcp_mode is McpMode.engine
    assert settings.store_backend is StoreBackend.sqlite
    assert settings.db_path == "data/surfacestream.db"
    assert settings.until_completed_respects_session is True
    assert settings.log_level == "INFO"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("MCP_MODE", "studio")
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("UNTIL_COMPLETED_RESPECTS_SESSION", "false")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = RuntimeSettings()
    assert settings.mcp_mode is McpMode.studio
    assert settings.store_backend is StoreBackend.memory
    assert settings.until_completed_respects_session is False
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("name", ["DB_PATH", "SURFACESTREAM_DB_PATH"])
def test_db_path_aliases(monkeypatch, tmp_path, name):
    monkeypatch.setenv(name, str(tmp_path / "x.db"))
    assert RuntimeSettings().db_path == str(tmp_path / "x.db")


def test_invalid_values_fail_fast(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    with pytest.raises(ValidationError):
        RuntimeSettings()
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    monkeypatch.setenv("SEGMENT_USAGE_LIMIT", "0")
    with pytest.raises(ValidationError):
        RuntimeSettings()


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_session_setting_reaches_suppression():
    stores = memory_stores()
    stores.visitors.upsert(VisitorRecord(visitor_id="v-1", workspace_id="ws-1"))
    stores.surfaces.insert(
        DeliverableSurface(
            surface_id="s-1",
            workspace_id="ws-1",
            kind=SurfaceKind.message,
            name="Tip",
            status=SurfaceStatus.active,
            frequency="until_completed",
        )
    )
    stores.impressions.insert(
        ImpressionRecord(
            impression_id="imp-1", surface_id="s-1", visitor_id="v-1", session_id="sess", action=ImpressionAction.shown
        )
    )
    context = EligibilityContext(session_id="sess")
    strict = build_eligibility_service(settings=RuntimeSettings(until_completed_respects_session=True), stores=stores)
    lenient = build_eligibility_service(settings=RuntimeSettings(until_completed_respects_session=False), stores=stores)
    assert strict.get_eligible("ws-1", "v-1", context) == []
    assert [s.surface_id for s in lenient.get_eligible("ws-1", "v-1", context)] == ["s-1"]
