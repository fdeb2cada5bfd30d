# tests/test_config.py
from importlib import reload

import promptrelay.core.config as cfg_mod


def test_defaults_present(monkeypatch):
    # Timeouts and agent limits fall back to usable defaults when unset.
    for name in (
        "CONNECT_TIMEOUT", "REQUEST_TIMEOUT", "AGENT_IDLE_TIMEOUT", "AGENT_MAX_HISTORY",
        "AGENT_MAX_SESSIONS", "AGENT_LINE_LIMIT",
    ):
        monkeypatch.delenv(name, raising=False)
    reload(cfg_mod)
    assert cfg_mod.CONNECT_TIMEOUT == 10
    assert cfg_mod.REQUEST_TIMEOUT == 60
    assert cfg_mod.AGENT_IDLE_TIMEOUT == 30
    assert cfg_mod.AGENT_MAX_HISTORY == 20
    assert cfg_mod.AGENT_MAX_SESSIONS == 500
    assert cfg_mod.AGENT_LINE_LIMIT == 16 * 1024 * 1024


def test_bool_parsing(monkeypatch):
    monkeypatch.setenv("MARKDOWN_FORMATTING", "Yes")
    reload(cfg_mod)
    assert cfg_mod.MARKDOWN_FORMATTING is True
    monkeypatch.setenv("MARKDOWN_FORMATTING", "no")
    reload(cfg_mod)
    assert cfg_mod.MARKDOWN_FORMATTING is False


def test_values_normalized(monkeypatch):
    monkeypatch.setenv("RESPONSE_LANGUAGE", " DE ")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("STREAM_TIMEOUT", "5.5")
    reload(cfg_mod)
    assert cfg_mod.RESPONSE_LANGUAGE == "de"
    assert cfg_mod.LOG_LEVEL == "DEBUG"
    assert cfg_mod.STREAM_TIMEOUT == 5.5
    monkeypatch.undo()
    reload(cfg_mod)
