import importlib

import edge_relay.vars as vars_module


def test_defaults(monkeypatch):
    for name in (
        "UPSTREAM_HOST",
        "UPSTREAM_OPEN_TIMEOUT",
        "MAX_PENDING_MESSAGES",
        "STATIC_ORIGIN",
        "API_TRANSLATOR_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    importlib.reload(vars_module)

    assert vars_module.UPSTREAM_HOST == "generativelanguage.googleapis.com"
    assert vars_module.UPSTREAM_OPEN_TIMEOUT == 10.0
    assert vars_module.MAX_PENDING_MESSAGES == 1000
    assert vars_module.STATIC_ORIGIN == ""
    assert vars_module.API_TRANSLATOR_URL == ""


def test_overrides_are_parsed(monkeypatch):
    monkeypatch.setenv("UPSTREAM_OPEN_TIMEOUT", "2.5")
    monkeypatch.setenv("MAX_PENDING_MESSAGES", "16")
    monkeypatch.setenv("STATIC_ORIGIN", "https://site.example/")
    monkeypatch.setenv("API_TRANSLATOR_URL", "http://translator:8080/")
    importlib.reload(vars_module)

    assert vars_module.UPSTREAM_OPEN_TIMEOUT == 2.5
    assert vars_module.MAX_PENDING_MESSAGES == 16
    assert vars_module.STATIC_ORIGIN == "https://site.example"
    assert vars_module.API_TRANSLATOR_URL == "http://translator:8080"

    monkeypatch.undo()
    importlib.reload(vars_module)
