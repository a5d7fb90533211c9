import importlib
import sys

import logging_config
import web_app
import web_app.db


def test_server_import_has_no_side_effects(monkeypatch):
    called = []

    monkeypatch.setattr(logging_config, "setup_logging", lambda *a, **k: called.append("logging"))
    monkeypatch.setattr(web_app.db, "init_db", lambda path=None: called.append("db"))

    # keep the already imported server for the other tests
    if "web_app.server" in sys.modules:
        monkeypatch.setattr(web_app, "server", sys.modules["web_app.server"])
    monkeypatch.delitem(sys.modules, "web_app.server", raising=False)
    module = importlib.import_module("web_app.server")

    assert called == []
    paths = {route.path for route in module.app.routes}
    assert {"/upload", "/forms", "/forms/{form_id}", "/login", "/logout"} <= paths
