import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add the sources before importing the server
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from config import config  # noqa: E402
from web_app import server  # noqa: E402


SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<h:html xmlns="http://www.w3.org/2002/xforms" xmlns:h="http://www.w3.org/1999/xhtml" xmlns:jr="http://openrosa.org/javarosa">
  <h:head>
    <h:title>Household survey</h:title>
    <model>
      <instance>
        <data id="household_survey">
          <name/>
          <age/>
          <address>
            <street/>
            <city/>
          </address>
        </data>
      </instance>
      <bind nodeset="/data/name" type="string" required="true()"/>
      <bind nodeset="/data/age" type="int"/>
      <bind nodeset="/data/address/city" type="xsd:string" readonly="true()"/>
    </model>
  </h:head>
  <h:body>
    <input ref="/data/name"><label>Name</label></input>
  </h:body>
</h:html>
"""

NO_TITLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<h:html xmlns="http://www.w3.org/2002/xforms" xmlns:h="http://www.w3.org/1999/xhtml">
  <h:head>
    <model>
      <instance>
        <data id="untitled_form">
          <q1/>
        </data>
      </instance>
      <bind nodeset="/data/q1" type="string"/>
    </model>
  </h:head>
  <h:body/>
</h:html>
"""

NO_ID_XML = """<h:html xmlns="http://www.w3.org/2002/xforms" xmlns:h="http://www.w3.org/1999/xhtml">
  <h:head>
    <h:title>No id</h:title>
    <model><instance><data><q1/></data></instance></model>
  </h:head>
</h:html>
"""


@pytest.fixture
def sample_xml() -> str:
    return SAMPLE_XML


@pytest.fixture
def no_title_xml() -> str:
    return NO_TITLE_XML


@pytest.fixture
def no_id_xml() -> str:
    return NO_ID_XML


@pytest.fixture
def app(monkeypatch):
    """Server app backed by an in-memory database with known users."""
    monkeypatch.setattr(config, "db_path", ":memory:")
    monkeypatch.setattr(config, "users", {"alice": "secret"})
    monkeypatch.setattr(config, "oauth_tokens", {"token-123": "collector", "orphan": ""})
    return server.app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def logged_in(client):
    resp = client.post(
        "/login",
        data={"username": "alice", "password": "secret"},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    return client
