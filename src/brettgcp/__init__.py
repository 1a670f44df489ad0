"""
A collection of utility wrappers around the Google Cloud Python API client.
The goal is to simplify the more tedious aspects like authentication, paging,
error handling and the structures for JSON requests/responses.

Python dataclasses are used for the resource structs and most of the logic is
translating between those and the raw dicts the discovery client deals in.

Authentication and the default project live in access.gcp and are shared by
every service module.  The simpler APIs (Pub/Sub, DNS, Translate, Vision,
Speech, Monitoring, Error Reporting, Resource Manager, Storage, Language) are
single modules with the operations as methods on the dataclasses.  BigQuery,
Datastore and Logging are larger so are packages with the raw API calls in an
ops module and the friendlier objects built on top of that.
"""
