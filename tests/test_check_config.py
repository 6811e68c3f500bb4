from check_config import check_config
from config.settings import Settings


def test_reports_configuration(capsys):
    assert check_config(Settings(log_file=None))

    output = capsys.readouterr().out
    assert "Override [reddit.com]" in output
    assert "https://api.allorigins.win/get?url=" in output
    assert "tiktok: tiktok.com" in output


def test_rejects_non_positive_timeout(capsys):
    assert not check_config(Settings(log_file=None, request_timeout=0))


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CORS_RELAY_ENABLED", "false")
    monkeypatch.setenv("PLACEHOLDER_HOSTS", '["tiktok.com", "instagram.com"]')

    settings = Settings()

    assert settings.cors_relay_enabled is False
    assert settings.placeholder_hosts == ["tiktok.com", "instagram.com"]
