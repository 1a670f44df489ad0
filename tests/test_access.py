from unittest.mock import MagicMock

import google.auth.exceptions
import pytest

from brettgcp import access
from brettgcp.access import gcp, execute, service
from brettgcp.errors import (GoogleCloudError, InvalidArgumentError, NotFoundError,
                             UnauthenticatedError, UnavailableError, from_status)

from conftest import PROJECT, http_error

def test_get_scope():
    assert gcp.get_scope("pubsub") == "https://www.googleapis.com/auth/pubsub"
    assert gcp.get_scope("https://www.googleapis.com/auth/cloud-platform") == \
        "https://www.googleapis.com/auth/cloud-platform"
    assert gcp.get_scope("not-a-scope") == ""

def test_project_from_environment(monkeypatch):
    assert gcp.project == PROJECT
    gcp.project = None
    monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
    monkeypatch.setenv("GCLOUD_PROJECT", "env-project")
    assert gcp.project == "env-project"

def test_config_round_trip(tmp_path):
    gcp.num_retries = 5
    gcp.developer_key = "AIza-test"
    path = tmp_path / "gcp.json"
    gcp.save_config(path)
    gcp.reset()
    config = gcp.load_config(path)
    assert config["project"] == PROJECT
    assert gcp.project == PROJECT
    assert gcp.num_retries == 5
    assert gcp.developer_key == "AIza-test"
    with pytest.raises(ValueError):
        gcp.num_retries = -1

@pytest.fixture()
def no_local_creds(monkeypatch, tmp_path):
    """Nothing on disk to find, so only application default credentials are left."""
    monkeypatch.delenv("GOOGLE_CLOUD_KEYFILE", raising=False)
    gcp.cred_cache = tmp_path / "tokens.json"
    gcp.client_secrets = tmp_path / "secrets.json"

def default_creds(monkeypatch, creds):
    monkeypatch.setattr(access.google.auth, "default", lambda scopes=None: (creds, "adc-project"))

def test_developer_key_alone(monkeypatch, no_local_creds):
    build = MagicMock(name="build")
    monkeypatch.setattr(access, "build", build)
    monkeypatch.setattr(access.google.auth, "default", MagicMock(
        side_effect=google.auth.exceptions.DefaultCredentialsError("none")))
    gcp.developer_key = "AIza-test"
    s = gcp.require_service("translate", "v2")
    assert s is build.return_value
    assert build.call_args.args == ("translate", "v2")
    assert build.call_args.kwargs["credentials"] is None
    assert build.call_args.kwargs["developerKey"] == "AIza-test"
    # built services are reused and the search isn't repeated
    assert gcp.require_service("translate", "v2") is s
    assert build.call_count == 1
    assert access.google.auth.default.call_count == 1

def test_developer_key_with_credentials(monkeypatch, no_local_creds):
    build = MagicMock(name="build")
    monkeypatch.setattr(access, "build", build)
    creds = MagicMock(name="creds", valid=True)
    default_creds(monkeypatch, creds)
    gcp.developer_key = "AIza-for-translate"
    gcp.get_service("bigquery", "v2")
    assert gcp.connected
    assert build.call_args.kwargs["credentials"] is creds
    assert build.call_args.kwargs["developerKey"] == "AIza-for-translate"

def test_failed_refresh_is_not_connected(monkeypatch, no_local_creds):
    creds = MagicMock(name="creds", valid=False)
    creds.refresh.side_effect = google.auth.exceptions.RefreshError("invalid_grant")
    default_creds(monkeypatch, creds)
    monkeypatch.setattr(access, "build", MagicMock(name="build"))
    assert gcp.get_service("pubsub", "v1") is None
    assert not gcp.connected
    with pytest.raises(UnauthenticatedError):
        gcp.require_service("pubsub", "v1")
    access.build.assert_not_called()

def test_require_service_without_credentials(monkeypatch):
    monkeypatch.setattr(gcp, "connect", lambda: False)
    assert gcp.get_service("pubsub", "v1") is None
    with pytest.raises(UnauthenticatedError):
        gcp.require_service("pubsub", "v1")

def test_execute_maps_http_errors():
    request = MagicMock()
    request.execute.side_effect = http_error(404, "Not found: Table test-project:ds.t", reason="notFound")
    with pytest.raises(NotFoundError) as e:
        execute(request)
    assert e.value.status_code == 404
    assert e.value.reason == "notFound"
    assert "Table test-project:ds.t" in str(e.value)
    assert e.value.__cause__ is not None
    request.execute.assert_called_once_with(num_retries=0)

def test_execute_unknown_status():
    request = MagicMock()
    request.execute.side_effect = http_error(418, "teapot")
    with pytest.raises(GoogleCloudError) as e:
        execute(request, num_retries=2)
    assert type(e.value) is GoogleCloudError
    request.execute.assert_called_once_with(num_retries=2)

def test_from_status():
    assert isinstance(from_status({"code": 3, "message": "bad image"}), InvalidArgumentError)
    err = from_status({"code": 14, "message": "try later"})
    assert isinstance(err, UnavailableError)
    assert err.status_code == 503
    assert type(from_status({"code": 99})) is GoogleCloudError

def test_service_decorator(monkeypatch):
    built = MagicMock(name="pubsub")
    monkeypatch.setattr(gcp, "require_service", lambda name, version: built)

    @service("pubsub", "v1")
    def topic_names(project, service=None):
        response = execute(service.projects().topics().list(project=f"projects/{project}"))
        return [t["name"] for t in response.get("topics", [])]

    built.projects.return_value.topics.return_value.list.return_value.execute.return_value = {
        "topics": [{"name": "projects/test-project/topics/jobs"}]}
    assert topic_names(PROJECT) == ["projects/test-project/topics/jobs"]
    built.projects.return_value.topics.return_value.list.assert_called_once_with(
        project="projects/test-project")
    other = MagicMock(name="other")
    other.projects.return_value.topics.return_value.list.return_value.execute.return_value = {}
    assert topic_names(PROJECT, service=other) == []
