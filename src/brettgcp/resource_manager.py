"""
Resource Manager (v1) projects: list, create, update, delete and IAM.
https://cloud.google.com/resource-manager/reference/rest/v1/projects
"""
from dataclasses import dataclass, field
from functools import partial
from typing import List, Self
import datetime
import logging
import time

from .access import gcp, execute
from .errors import NotFoundError, from_status
from .resources import GoogleCloudResourceBase, Policy, ResultList, compact, fetch_page, from_rfc3339

logger = logging.getLogger(__name__)

_get_service = partial(gcp.require_service, "cloudresourcemanager", "v1")


@dataclass
class Operation():
    """https://cloud.google.com/resource-manager/reference/rest/v1/operations"""
    name: str|None = field(default=None)
    is_done: bool = field(default=False)
    metadata: dict|None = field(default=None)
    response: dict|None = field(default=None)
    error: dict|None = field(default=None)

    @classmethod
    def from_base(cls, base: dict|None) -> Self:
        base = base or {}
        return cls(base.get("name"), bool(base.get("done", False)), base.get("metadata"),
                   base.get("response"), base.get("error"))

    def done(self) -> bool:
        return self.is_done

    def reload(self) -> Self:
        fresh = Operation.from_base(execute(_get_service().operations().get(name=self.name)))
        self.is_done, self.metadata = fresh.is_done, fresh.metadata
        self.response, self.error = fresh.response, fresh.error
        return self

    def wait_until_done(self, timeout: float|None = None, max_delay: float = 60.0) -> Self:
        """Poll until done.  Raises the operation's error if it failed."""
        delay = 1.0
        start = time.monotonic()
        while not self.done():
            if timeout is not None and time.monotonic() - start >= timeout:
                raise TimeoutError(f"Operation {self.name} not done after {timeout}s")
            time.sleep(delay)
            delay = min(delay * 2, max_delay)
            self.reload()
        if self.error is not None:
            raise from_status(self.error)
        return self


@dataclass
class Project(GoogleCloudResourceBase):
    """
    https://cloud.google.com/resource-manager/reference/rest/v1/projects#Project

        project = resource_manager.project("tokyo-rain-123")
        project.labels["env"] = "production"
        project.save()
    """
    projectId: str|None = field(default=None)
    projectNumber: str|None = field(default=None)
    name: str|None = field(default=None)
    labels: dict = field(default_factory=dict)
    createTime: str|None = field(default=None)
    lifecycleState: str|None = field(default=None)
    parent: dict|None = field(default=None)
    operation: Operation|None = field(default=None, repr=False, compare=False)

    def __bool__(self) -> bool:
        return bool(self.projectId)

    def __str__(self) -> str:
        return f"{self.projectId}:{self.name}" if self else "<empty>"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    @property
    def project_id(self) -> str|None:
        return self.projectId

    @property
    def project_number(self) -> str|None:
        return self.projectNumber

    @property
    def created_at(self) -> datetime.datetime|None:
        return from_rfc3339(self.createTime)

    @property
    def lifecycle_state(self) -> str|None:
        return self.lifecycleState

    def is_active(self) -> bool:
        return self.lifecycleState == "ACTIVE"

    def is_unspecified(self) -> bool:
        return self.lifecycleState == "LIFECYCLE_STATE_UNSPECIFIED"

    def is_delete_requested(self) -> bool:
        return self.lifecycleState == "DELETE_REQUESTED"

    def is_delete_in_progress(self) -> bool:
        return self.lifecycleState == "DELETE_IN_PROGRESS"

    def to_base(self) -> dict:
        return compact({"projectId": self.projectId, "name": self.name,
                        "labels": dict(self.labels or {}), "parent": self.parent})

    def reload(self) -> Self:
        self.update_fields(**execute(_get_service().projects().get(projectId=self.projectId)))
        return self

    refresh = reload

    def save(self) -> Self:
        """
        https://cloud.google.com/resource-manager/reference/rest/v1/projects/update
        Writes name, labels and parent.  Labels missing here are removed upstream.
        """
        gapi = execute(_get_service().projects().update(projectId=self.projectId, body=self.to_base()))
        self.update_fields(**gapi)
        return self

    def delete(self) -> bool:
        """Marks the project DELETE_REQUESTED, undelete() reverses it for a while."""
        execute(_get_service().projects().delete(projectId=self.projectId))
        self.reload()
        return True

    def undelete(self) -> bool:
        execute(_get_service().projects().undelete(projectId=self.projectId, body={}))
        self.reload()
        return True

    def policy(self) -> Policy:
        gapi = execute(_get_service().projects().getIamPolicy(resource=self.projectId, body={}))
        return Policy.from_base(gapi)

    def update_policy(self, policy: Policy) -> Policy:
        gapi = execute(_get_service().projects().setIamPolicy(resource=self.projectId,
                                                              body={"policy": policy.to_base()}))
        return Policy.from_base(gapi)

    def test_permissions(self, *permissions: str) -> List[str]:
        gapi = execute(_get_service().projects().testIamPermissions(
            resource=self.projectId, body={"permissions": list(permissions)})) or {}
        return gapi.get("permissions", [])


def projects(filter: str|None = None, max: int|None = None, token: str|None = None) -> ResultList:
    """
    https://cloud.google.com/resource-manager/reference/rest/v1/projects/list
    e.g. filter="labels.env:production"
    """
    return fetch_page(_get_service().projects().list, "projects", Project.from_base, token,
                      filter=filter, pageSize=max)


def project(project_id: str) -> Project|None:
    try:
        return Project.from_base(execute(_get_service().projects().get(projectId=project_id)))
    except NotFoundError:
        return None


def create_project(project_id: str, name: str|None = None, labels: dict|None = None,
                   parent: dict|None = None) -> Project:
    """
    https://cloud.google.com/resource-manager/reference/rest/v1/projects/create
    Creation carries on in the background: the returned Project holds the
    Operation, wait on that and reload() before relying on the project.
    parent e.g. {"type": "organization", "id": "123"}
    """
    proj = Project(projectId=project_id, name=name, labels=dict(labels or {}), parent=parent)
    proj.operation = Operation.from_base(execute(_get_service().projects().create(body=proj.to_base())))
    logger.info("creating project %s (%s)", project_id, proj.operation.name)
    return proj
