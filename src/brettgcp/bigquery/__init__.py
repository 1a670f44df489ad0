"""
Classes to facilitate working with BigQuery.
Project is the entry point, everything else hangs off it.
"""

from .params import to_query_param, query_params
from .resources import SchemaField
from .data import QueryData, Data, InsertResponse
from .job import Job, QueryJob
from .table import Table
from .dataset import Dataset
from .project import Project
