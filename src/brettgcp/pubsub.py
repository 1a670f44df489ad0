"""
Cloud Pub/Sub topics and subscriptions.
https://cloud.google.com/pubsub/docs/reference/rest

    topic = topic("my-topic", autocreate=True)
    topic.publish(b"task completed", status="ok")
    sub = topic.subscribe("my-sub")
    for msg in sub.pull(autoack=True):
        print(msg.data)
"""
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Iterator, List, Self
import base64
import logging
import threading

from .access import gcp, execute
from .errors import NotFoundError
from .resources import (GoogleCloudResourceBase, Policy, ResultList, compact, fetch_page,
                        from_rfc3339, project_id)

logger = logging.getLogger(__name__)

_get_service = partial(gcp.require_service, "pubsub", "v1")


def topic_path(name: str, project: str|None = None) -> str:
    n = str(name)
    if n.startswith("projects/"):
        return n
    return f"projects/{project_id(project)}/topics/{n}"


def subscription_path(name: str, project: str|None = None) -> str:
    n = str(name)
    if n.startswith("projects/"):
        return n
    return f"projects/{project_id(project)}/subscriptions/{n}"


def _short_name(path: str|None) -> str|None:
    return None if path is None else str(path).rpartition("/")[2]


def _to_bytes(data: str|bytes|None) -> bytes:
    if data is None:
        return b""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


@dataclass
class Message(GoogleCloudResourceBase):
    """
    https://cloud.google.com/pubsub/docs/reference/rest/v1/PubsubMessage
    data is always bytes here, base64 only exists on the wire.
    """
    data: bytes = field(default=b"")
    attributes: dict = field(default_factory=dict)
    messageId: str|None = field(default=None)
    publishTime: str|None = field(default=None)
    orderingKey: str|None = field(default=None)

    def __post_init__(self) -> None:
        self.fixup()

    def __bool__(self) -> bool:
        return bool(self.data) or bool(self.attributes)

    def __str__(self) -> str:
        return f"{self.messageId}:{self.data!r}"

    def fixup(self) -> None:
        self.data = _to_bytes(self.data)
        self.attributes = {str(k): str(v) for k, v in (self.attributes or {}).items()}

    @property
    def msg_id(self) -> str|None:
        return self.messageId

    @property
    def published_at(self):
        return from_rfc3339(self.publishTime)

    def to_base(self) -> dict:
        self.fixup()
        return compact({
            "data": base64.b64encode(self.data).decode("ascii"),
            "attributes": self.attributes or None,
            "orderingKey": self.orderingKey,
        })

    @classmethod
    def from_base(cls, base: dict|None) -> Self:
        base = dict(base or {})
        base["data"] = base64.b64decode(base.get("data") or "")
        return super().from_base(base)


@dataclass
class ReceivedMessage():
    """A pulled message with the ack_id needed to acknowledge it."""
    ack_id: str
    message: Message
    subscription: "Subscription|None" = field(default=None, repr=False, compare=False)
    delivery_attempt: int|None = field(default=None)

    def __str__(self) -> str:
        return f"{self.ack_id}:{self.message}"

    @property
    def data(self) -> bytes:
        return self.message.data

    @property
    def attributes(self) -> dict:
        return self.message.attributes

    @property
    def msg_id(self) -> str|None:
        return self.message.messageId

    def acknowledge(self) -> None:
        self.subscription.acknowledge(self)

    ack = acknowledge

    def delay(self, new_deadline: int) -> None:
        self.subscription.delay(new_deadline, self)


def _ack_ids(messages) -> List[str]:
    ids = []
    for m in messages:
        if isinstance(m, ReceivedMessage):
            ids.append(m.ack_id)
        elif isinstance(m, (list, tuple)):
            ids.extend(_ack_ids(m))
        else:
            ids.append(str(m))
    return ids


class Batch():
    """
    Messages queued by Topic.batch() and published in one call on exit.
    message_ids is filled in once published.
    """
    def __init__(self, topic: "Topic") -> None:
        self.topic = topic
        self.messages: List[Message] = []
        self.message_ids: List[str] = []

    def __len__(self) -> int:
        return len(self.messages)

    def publish(self, data: str|bytes|None = None, **attributes) -> None:
        self.messages.append(Message(data=data, attributes=attributes))


@dataclass
class Topic(GoogleCloudResourceBase):
    """https://cloud.google.com/pubsub/docs/reference/rest/v1/projects.topics"""
    name: str|None = field(default=None)
    labels: dict|None = field(default=None)
    kmsKeyName: str|None = field(default=None)
    messageRetentionDuration: str|None = field(default=None)

    def __bool__(self) -> bool:
        return bool(self.name)

    def __str__(self) -> str:
        return str(self.name) if self else "<empty>"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    @property
    def short_name(self) -> str|None:
        return _short_name(self.name)

    def delete(self) -> bool:
        execute(_get_service().projects().topics().delete(topic=self.name))
        return True

    def publish(self, data: str|bytes|None = None, **attributes) -> str:
        """
        https://cloud.google.com/pubsub/docs/reference/rest/v1/projects.topics/publish
        Returns the message ID.
        """
        return self._publish([Message(data=data, attributes=attributes)])[0]

    def _publish(self, messages: List[Message]) -> List[str]:
        body = {"messages": [m.to_base() for m in messages]}
        response = execute(_get_service().projects().topics().publish(topic=self.name, body=body)) or {}
        return response.get("messageIds", [])

    @contextmanager
    def batch(self) -> Iterator[Batch]:
        """
        Publish several messages in one request:
            with topic.batch() as b:
                b.publish("one")
                b.publish("two", kind="greeting")
        Nothing is sent if the block raises.
        """
        b = Batch(self)
        yield b
        if b.messages:
            b.message_ids = self._publish(b.messages)

    def subscribe(self, name: str, deadline: int|None = None,
                  endpoint: str|None = None) -> "Subscription":
        """
        https://cloud.google.com/pubsub/docs/reference/rest/v1/projects.subscriptions/create
        deadline is the ack deadline in seconds, endpoint makes it a push subscription.
        """
        path = subscription_path(name, self.name.split("/")[1])
        body = compact({
            "topic": self.name,
            "ackDeadlineSeconds": deadline,
            "pushConfig": None if endpoint is None else {"pushEndpoint": endpoint},
        })
        gapi = execute(_get_service().projects().subscriptions().create(name=path, body=body))
        return Subscription.from_base(gapi)

    create_subscription = subscribe

    def subscriptions(self, max: int|None = None, token: str|None = None) -> ResultList:
        """Subscriptions attached to this topic."""
        return fetch_page(_get_service().projects().topics().subscriptions().list,
                          "subscriptions", lambda n: Subscription(name=n, topic=self.name), token,
                          topic=self.name, pageSize=max)

    def policy(self) -> Policy:
        return Policy.from_base(execute(_get_service().projects().topics().getIamPolicy(resource=self.name)))

    def update_policy(self, policy: Policy) -> Policy:
        gapi = execute(_get_service().projects().topics().setIamPolicy(
            resource=self.name, body={"policy": policy.to_base()}))
        return Policy.from_base(gapi)

    def test_permissions(self, *permissions: str) -> List[str]:
        """Which of the given permissions the caller has on this topic."""
        gapi = execute(_get_service().projects().topics().testIamPermissions(
            resource=self.name, body={"permissions": list(permissions)})) or {}
        return gapi.get("permissions", [])


@dataclass
class Subscription(GoogleCloudResourceBase):
    """https://cloud.google.com/pubsub/docs/reference/rest/v1/projects.subscriptions"""
    name: str|None = field(default=None)
    topic: str|None = field(default=None)
    pushConfig: dict|None = field(default=None)
    ackDeadlineSeconds: int|None = field(default=None)
    retainAckedMessages: bool|None = field(default=None)
    messageRetentionDuration: str|None = field(default=None)
    labels: dict|None = field(default=None)
    filter: str|None = field(default=None)
    state: str|None = field(default=None)

    def __bool__(self) -> bool:
        return bool(self.name)

    def __str__(self) -> str:
        return str(self.name) if self else "<empty>"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    @property
    def short_name(self) -> str|None:
        return _short_name(self.name)

    @property
    def endpoint(self) -> str|None:
        return (self.pushConfig or {}).get("pushEndpoint")

    def is_push(self) -> bool:
        return bool(self.endpoint)

    def is_pull(self) -> bool:
        return not self.is_push()

    def reload(self) -> Self:
        self.update_fields(**execute(_get_service().projects().subscriptions().get(subscription=self.name)))
        return self

    def delete(self) -> bool:
        execute(_get_service().projects().subscriptions().delete(subscription=self.name))
        return True

    def pull(self, immediate: bool = True, max: int = 100, autoack: bool = False) -> List[ReceivedMessage]:
        """
        https://cloud.google.com/pubsub/docs/reference/rest/v1/projects.subscriptions/pull
        immediate returns at once even with nothing waiting, otherwise the call
        blocks until there is something.  autoack acknowledges everything returned.
        """
        body = {"returnImmediately": immediate, "maxMessages": max}
        gapi = execute(_get_service().projects().subscriptions().pull(subscription=self.name, body=body)) or {}
        messages = [ReceivedMessage(ack_id=r["ackId"], message=Message.from_base(r.get("message")),
                                    subscription=self, delivery_attempt=r.get("deliveryAttempt"))
                    for r in gapi.get("receivedMessages", [])]
        if autoack and messages:
            self.acknowledge(messages)
        return messages

    def wait_for_messages(self, max: int = 100) -> List[ReceivedMessage]:
        """pull() that blocks until messages are available."""
        return self.pull(immediate=False, max=max)

    def acknowledge(self, *messages) -> None:
        """messages are ReceivedMessage objects or ack_id strings (or lists of them)."""
        ids = _ack_ids(messages)
        if not ids:
            return
        execute(_get_service().projects().subscriptions().acknowledge(
            subscription=self.name, body={"ackIds": ids}))

    ack = acknowledge

    def delay(self, new_deadline: int, *messages) -> None:
        """
        https://cloud.google.com/pubsub/docs/reference/rest/v1/projects.subscriptions/modifyAckDeadline
        new_deadline in seconds, 0 releases the messages for redelivery.
        """
        ids = _ack_ids(messages)
        if not ids:
            return
        execute(_get_service().projects().subscriptions().modifyAckDeadline(
            subscription=self.name, body={"ackIds": ids, "ackDeadlineSeconds": new_deadline}))

    def listen(self, callback: Callable[[ReceivedMessage], None], max: int = 100,
               autoack: bool = False, delay: float = 1, stop: threading.Event|None = None) -> None:
        """
        Pull in a loop calling callback for each message until stop is set.
        Waits delay seconds when nothing came back.  Runs in the calling
        thread, put it in a thread of its own for background use.
        """
        stop = stop if stop is not None else threading.Event()
        while not stop.is_set():
            messages = self.pull(immediate=True, max=max, autoack=autoack)
            for m in messages:
                callback(m)
            if not messages:
                stop.wait(delay)

    def policy(self) -> Policy:
        return Policy.from_base(execute(_get_service().projects().subscriptions().getIamPolicy(resource=self.name)))

    def update_policy(self, policy: Policy) -> Policy:
        gapi = execute(_get_service().projects().subscriptions().setIamPolicy(
            resource=self.name, body={"policy": policy.to_base()}))
        return Policy.from_base(gapi)

    def test_permissions(self, *permissions: str) -> List[str]:
        gapi = execute(_get_service().projects().subscriptions().testIamPermissions(
            resource=self.name, body={"permissions": list(permissions)})) or {}
        return gapi.get("permissions", [])


def topics(max: int|None = None, token: str|None = None, project: str|None = None) -> ResultList:
    """https://cloud.google.com/pubsub/docs/reference/rest/v1/projects.topics/list"""
    return fetch_page(_get_service().projects().topics().list, "topics", Topic.from_base, token,
                      project=f"projects/{project_id(project)}", pageSize=max)


def create_topic(name: str, labels: dict|None = None, project: str|None = None) -> Topic:
    path = topic_path(name, project)
    gapi = execute(_get_service().projects().topics().create(name=path, body=compact({"labels": labels})))
    logger.debug("created topic %s", path)
    return Topic.from_base(gapi)


def topic(name: str, autocreate: bool = False, project: str|None = None) -> Topic|None:
    """
    https://cloud.google.com/pubsub/docs/reference/rest/v1/projects.topics/get
    None if it doesn't exist, unless autocreate.
    """
    path = topic_path(name, project)
    try:
        return Topic.from_base(execute(_get_service().projects().topics().get(topic=path)))
    except NotFoundError:
        if autocreate:
            return create_topic(name, project=project)
        return None


def subscriptions(max: int|None = None, token: str|None = None, project: str|None = None) -> ResultList:
    """https://cloud.google.com/pubsub/docs/reference/rest/v1/projects.subscriptions/list"""
    return fetch_page(_get_service().projects().subscriptions().list, "subscriptions",
                      Subscription.from_base, token,
                      project=f"projects/{project_id(project)}", pageSize=max)


def subscription(name: str, project: str|None = None) -> Subscription|None:
    path = subscription_path(name, project)
    try:
        return Subscription.from_base(execute(_get_service().projects().subscriptions().get(subscription=path)))
    except NotFoundError:
        return None
