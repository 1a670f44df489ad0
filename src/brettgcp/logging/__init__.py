"""
Cloud Logging: read and write entries, manage sinks and logs-based metrics.
Project is the entry point.  Logger and AsyncWriter are for applications
shipping their own logs.
"""

from .entry import SEVERITIES, Entry, Resource, severity_name, log_path
from .resources import ResourceDescriptor, Sink, Metric
from .logger import Logger, CloudLoggingHandler
from .async_writer import AsyncWriter
from .project import Project
