import json
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from brettgcp.access import gcp

PROJECT = "test-project"

@pytest.fixture(autouse=True)
def project():
    """Every test runs against a fixed default project with no real credentials."""
    gcp.reset()
    gcp.project = PROJECT
    gcp.num_retries = 0
    yield PROJECT
    gcp.reset()

@pytest.fixture()
def mock_service(monkeypatch):
    """
    Replace a service module's _get_service with a MagicMock discovery client.
    Returns a function taking the module so a test can patch what it needs:
        svc = mock_service(brettgcp.bigquery.ops)
        svc.jobs.return_value.query.return_value.execute.return_value = {...}
    """
    def _patch(module):
        svc = MagicMock(name=f"{module.__name__}.service")
        monkeypatch.setattr(module, "_get_service", lambda: svc)
        return svc
    return _patch

def api_method(svc, *path):
    """
    Walk collection calls down to the method mock, e.g.
    api_method(svc, "projects", "topics", "publish")
    """
    m = svc
    for p in path[:-1]:
        m = getattr(m, p).return_value
    return getattr(m, path[-1])

def respond(svc, *path, response=None, side_effect=None):
    """Set what execute() returns for the method at path and hand back the method mock."""
    method = api_method(svc, *path)
    if side_effect is not None:
        method.return_value.execute.side_effect = side_effect
    else:
        method.return_value.execute.return_value = response
    return method

def http_error(status, message="error", reason=None):
    """An HttpError shaped like the ones the discovery client raises."""
    error = {"code": status, "message": message}
    if reason:
        error["errors"] = [{"reason": reason, "message": message}]
    return HttpError(httplib2.Response({"status": status}), json.dumps({"error": error}).encode("utf-8"))
