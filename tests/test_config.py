import pytest

from santavibe.core.config import load_settings


@pytest.fixture
def env(monkeypatch):
    for name in ("LOG_LEVEL", "LOG_PATH", "DRAW_MAX_ATTEMPTS", "DRAW_TIMEOUT", "RATE_LIMIT_CALLS", "RATE_LIMIT_PERIOD"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BOT_TOKEN", "123456:ABCDEF")
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    return monkeypatch


def test_defaults(env):
    settings = load_settings()
    assert settings.bot_token == "123456:ABCDEF"
    assert settings.log_level == "INFO"
    assert settings.log_path == "logs/santavibe.log"
    assert settings.draw_max_attempts == 1000
    assert settings.draw_timeout == 30
    assert settings.rate_limit_calls == 5
    assert settings.rate_limit_period == 10


def test_overrides(env):
    env.setenv("DRAW_MAX_ATTEMPTS", "250")
    env.setenv("LOG_LEVEL", "DEBUG")
    settings = load_settings()
    assert settings.draw_max_attempts == 250
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("name", ["BOT_TOKEN", "DATABASE_URL"])
def test_required_values(env, name):
    env.delenv(name)
    with pytest.raises(ValueError, match=name):
        load_settings()


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_invalid_draw_attempts(env, value):
    env.setenv("DRAW_MAX_ATTEMPTS", value)
    with pytest.raises(ValueError, match="DRAW_MAX_ATTEMPTS"):
        load_settings()


def test_draw_timeout_override(env):
    env.setenv("DRAW_TIMEOUT", "5")
    assert load_settings().draw_timeout == 5


@pytest.mark.parametrize("value", ["soon", "0"])
def test_invalid_draw_timeout(env, value):
    env.setenv("DRAW_TIMEOUT", value)
    with pytest.raises(ValueError, match="DRAW_TIMEOUT"):
        load_settings()
