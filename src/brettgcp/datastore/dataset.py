from typing import List, Self
import logging

from ..errors import GoogleCloudError
from ..resources import compact, project_id as default_project
from . import ops
from .entity import Entity, Key
from .query import GqlQuery, Query, QueryResults

logger = logging.getLogger(__name__)

CONSISTENCY = {"strong": "STRONG", "eventual": "EVENTUAL"}


class LookupResults(list):
    """
    Entities found by a lookup.  missing holds entities (key only) that don't
    exist and deferred the keys Datastore didn't get to; look those up again.
    """
    def __init__(self, entities=(), missing=(), deferred=()) -> None:
        super().__init__(entities)
        self.missing = list(missing)
        self.deferred = list(deferred)


class Dataset():
    """
    The entry point to Cloud Datastore for one project (and optionally a namespace).

        datastore = Dataset()
        task = datastore.entity("Task", "sampleTask", description="Buy milk", done=False)
        datastore.save(task)
        for t in datastore.run(datastore.query("Task").where("done", "=", False)):
            print(t["description"])
    """

    def __init__(self, project: str|None = None, namespace: str|None = None) -> None:
        self._project = project
        self.namespace = namespace

    def __str__(self) -> str:
        return self.project if self.namespace is None else f"{self.project}/{self.namespace}"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    @property
    def project(self) -> str:
        return default_project(self._project)

    def key(self, kind: str, id_or_name: int|str|None = None, parent: Key|None = None) -> Key:
        return Key(kind, id_or_name, parent=parent, project=self.project, namespace=self.namespace)

    def entity(self, key_or_kind: Key|str|None = None, id_or_name: int|str|None = None,
               **properties) -> Entity:
        """entity("Task", "sampleTask", done=False) or entity(key, done=False)"""
        if isinstance(key_or_kind, str):
            key = self.key(key_or_kind, id_or_name)
        else:
            key = key_or_kind
        return Entity(key, **properties)

    def query(self, *kinds: str) -> Query:
        return Query(*kinds)

    def gql(self, query: str, bindings: dict|list|None = None,
            allow_literals: bool|None = None) -> GqlQuery:
        return GqlQuery(query, bindings, allow_literals)

    def _key_base(self, key: Key) -> dict:
        if key.project is None:
            key.project = self.project
        if key.namespace is None and self.namespace is not None:
            key.namespace = self.namespace
        return key.to_base()

    def _entity_base(self, entity: Entity) -> dict:
        if entity.key is None:
            raise ValueError("Entity has no key")
        self._key_base(entity.key)
        return entity.to_base()

    def _read_options(self, consistency: str|None) -> dict|None:
        if consistency is None:
            return None
        c = CONSISTENCY.get(str(consistency).lower())
        if c is None:
            raise ValueError(f"Invalid read consistency: {consistency}")
        return {"readConsistency": c}

    def find(self, key: Key, consistency: str|None = None) -> Entity|None:
        """The entity for key, None if there isn't one."""
        found = self.find_all(key, consistency=consistency)
        return found[0] if found else None

    get = find

    def find_all(self, *keys: Key, consistency: str|None = None) -> LookupResults:
        """
        https://cloud.google.com/datastore/docs/reference/data/rest/v1/projects/lookup
        consistency is "strong" or "eventual", outside a transaction.
        """
        body = compact({"keys": [self._key_base(k) for k in keys],
                        "readOptions": self._read_options(consistency)})
        response = ops.lookup(self.project, body)
        return LookupResults([Entity.from_base(r["entity"]) for r in response.get("found", [])],
                             [Entity.from_base(r["entity"]) for r in response.get("missing", [])],
                             [Key.from_base(k) for k in response.get("deferred", [])])

    lookup = find_all

    def run(self, query: Query|GqlQuery, namespace: str|None = None,
            consistency: str|None = None) -> QueryResults:
        """
        https://cloud.google.com/datastore/docs/reference/data/rest/v1/projects/runQuery
        Runs a Query or GqlQuery.  Use next()/all() on the results for more batches.
        """
        if isinstance(query, GqlQuery):
            request = {"gqlQuery": query.to_base()}
        else:
            request = {"query": query.to_base()}
        return self._run_query(request, namespace or self.namespace, self._read_options(consistency))

    run_query = run

    def _run_query(self, request: dict, namespace: str|None, read_options: dict|None) -> QueryResults:
        body = {"partitionId": compact({"projectId": self.project, "namespaceId": namespace}), **request}
        if read_options:
            body["readOptions"] = read_options
        response = ops.run_query(self.project, body)
        batch = response.get("batch", {})
        results = batch.get("entityResults", [])
        # GQL comes back with the equivalent query, which is what later batches run
        next_query = dict(response.get("query") or request.get("query") or {})

        def fetch(cursor: str) -> QueryResults:
            q = dict(next_query, startCursor=cursor)
            # offset was used up by the first batch, and limit counts what's left
            q.pop("offset", None)
            if "limit" in q:
                q["limit"] = max(0, int(q["limit"]) - len(results))
            return self._run_query({"query": q}, namespace, read_options)

        return QueryResults([Entity.from_base(r["entity"]) for r in results],
                            [r.get("cursor") for r in results],
                            batch.get("endCursor"), batch.get("moreResults"),
                            int(batch.get("skippedResults", 0)),
                            fetch if next_query else None)

    def _mutate(self, op: str, entities: tuple) -> List[Entity]:
        mutations = [{op: self._entity_base(e)} for e in entities]
        self._commit(mutations, list(entities))
        return list(entities)

    def save(self, *entities: Entity) -> List[Entity]:
        """
        Insert or update.  Entities with incomplete keys get their allocated
        key set once the commit goes through.
        """
        return self._mutate("upsert", entities)

    upsert = save

    def insert(self, *entities: Entity) -> List[Entity]:
        """Fails with AlreadyExistsError if any of them exists."""
        return self._mutate("insert", entities)

    def update(self, *entities: Entity) -> List[Entity]:
        """Fails with NotFoundError if any of them doesn't exist."""
        return self._mutate("update", entities)

    def delete(self, *keys_or_entities: Key|Entity) -> bool:
        keys = [k.key if isinstance(k, Entity) else k for k in keys_or_entities]
        self._commit([{"delete": self._key_base(k)} for k in keys], [None] * len(keys))
        return True

    def _commit(self, mutations: List[dict], entities: List[Entity|None]) -> None:
        response = ops.commit(self.project, {"mode": "NON_TRANSACTIONAL", "mutations": mutations})
        _apply_keys(response, entities)

    def allocate_ids(self, incomplete_key: Key, count: int = 1) -> List[Key]:
        """
        https://cloud.google.com/datastore/docs/reference/data/rest/v1/projects/allocateIds
        count complete keys for the kind (and parent) of incomplete_key.
        """
        if incomplete_key.is_complete():
            raise ValueError("An incomplete key is needed to allocate IDs")
        base = self._key_base(incomplete_key)
        response = ops.allocate_ids(self.project, {"keys": [base] * count})
        return [Key.from_base(k) for k in response.get("keys", [])]

    def transaction(self) -> "Transaction":
        """
        A transaction, best used as a context manager which commits at the end
        of the block or rolls back if it raises:

            with datastore.transaction() as tx:
                task = tx.find(key)
                task["done"] = True
                tx.save(task)
        """
        return Transaction(self)


def _apply_keys(response: dict, entities: List[Entity|None]) -> None:
    for entity, result in zip(entities, response.get("mutationResults", [])):
        if entity is not None and "key" in result:
            entity.key = Key.from_base(result["key"])


class Transaction(Dataset):
    """
    Reads see a consistent snapshot; writes are held until commit() and then
    applied together or not at all.
    """

    def __init__(self, dataset: Dataset) -> None:
        super().__init__(dataset.project, dataset.namespace)
        self.id: str|None = None
        self._mutations: List[dict] = []
        self._entities: List[Entity|None] = []

    def __enter__(self) -> Self:
        self.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self.id is None:
            return False
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return False

    def begin(self) -> Self:
        if self.id is not None:
            raise RuntimeError("Transaction already started")
        self.id = ops.begin_transaction(self.project)
        logger.debug("began transaction %s", self.id)
        return self

    start = begin

    def _read_options(self, consistency: str|None) -> dict|None:
        if self.id is None:
            return super()._read_options(consistency)
        return {"transaction": self.id}

    def _commit(self, mutations: List[dict], entities: List[Entity|None]) -> None:
        self._mutations.extend(mutations)
        self._entities.extend(entities)

    def commit(self) -> List[Entity]:
        """Send the queued writes.  Returns the entities that were saved."""
        if self.id is None:
            raise RuntimeError("Transaction not started")
        try:
            response = ops.commit(self.project, {"mode": "TRANSACTIONAL", "transaction": self.id,
                                                 "mutations": self._mutations})
            _apply_keys(response, self._entities)
            return [e for e in self._entities if e is not None]
        except GoogleCloudError:
            # a failed commit leaves the transaction open server side
            try:
                ops.rollback(self.project, self.id)
            except GoogleCloudError as e:
                logger.warning("rollback of transaction %s failed: %s", self.id, e)
            raise
        finally:
            self._reset()

    def rollback(self) -> None:
        if self.id is None:
            raise RuntimeError("Transaction not started")
        try:
            ops.rollback(self.project, self.id)
        finally:
            self._reset()

    def _reset(self) -> None:
        self.id = None
        self._mutations = []
        self._entities = []

    def transaction(self) -> "Transaction":
        raise RuntimeError("Transactions don't nest")
