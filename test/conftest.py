import pytest

from pp_fee_updater.core.config import settings


@pytest.fixture(autouse=True)
def isolated_kill_switch(tmp_path, monkeypatch):
    """Points the kill switch at a per-test path so tests never see a real one."""
    monkeypatch.setattr(settings, "KILL_SWITCH_FILE", str(tmp_path / "kill_switch"))
    yield
