from pathlib import Path

import pytest

from timeflow.config import load_config


def set_required_env(monkeypatch) -> None:
    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.setenv("GUILD_ID", "10")
    monkeypatch.setenv("REPORT_CHANNEL_ID", "20")
    monkeypatch.setenv("TIMEZONE", "Europe/Berlin")
    monkeypatch.delenv("TIMEFLOW_DB_PATH", raising=False)


def test_load_config_defaults(monkeypatch) -> None:
    set_required_env(monkeypatch)

    config = load_config()

    assert config.guild_id == 10
    assert config.report_channel_id == 20
    assert config.timezone.key == "Europe/Berlin"
    assert config.db_path == Path("timeflow.db")


def test_load_config_rejects_bad_values(monkeypatch) -> None:
    set_required_env(monkeypatch)
    monkeypatch.setenv("GUILD_ID", "-3")
    with pytest.raises(ValueError):
        load_config()

    set_required_env(monkeypatch)
    monkeypatch.setenv("TIMEZONE", "Mars/Olympus")
    with pytest.raises(ValueError):
        load_config()

    set_required_env(monkeypatch)
    monkeypatch.delenv("DISCORD_TOKEN")
    with pytest.raises(ValueError, match="DISCORD_TOKEN"):
        load_config()
