"""
Cloud Datastore entities, keys, queries and transactions.
Dataset is the entry point.
"""

from .entity import GeoPoint, Key, Entity, to_value, from_value
from .query import Query, GqlQuery, QueryResults, Cursor
from .dataset import Dataset, Transaction, LookupResults
