import datetime
from decimal import Decimal

import pytest

import brettgcp.bigquery.ops as bq_ops
from brettgcp.bigquery import Project, Dataset, QueryData, QueryJob
from brettgcp.bigquery.params import to_query_param, query_params

from conftest import PROJECT, respond

QUERY = "SELECT name, age, score, active, create_date, update_timestamp FROM `some_dataset.users`"

def query_data_gapi():
    return {
        "kind": "bigquery#queryResponse",
        "schema": {"fields": [
            {"name": "name", "type": "STRING", "mode": "NULLABLE"},
            {"name": "age", "type": "INTEGER", "mode": "NULLABLE"},
            {"name": "score", "type": "FLOAT", "mode": "NULLABLE"},
            {"name": "active", "type": "BOOLEAN", "mode": "NULLABLE"},
        ]},
        "jobReference": {"projectId": PROJECT, "jobId": "job9876543210"},
        "totalRows": "3",
        "rows": [
            {"f": [{"v": "Heidi"}, {"v": "36"}, {"v": "7.65"}, {"v": "true"}]},
            {"f": [{"v": "Aaron"}, {"v": "42"}, {"v": "8.15"}, {"v": "false"}]},
            {"f": [{"v": "Sally"}, {"v": None}, {"v": None}, {"v": None}]},
        ],
        "pageToken": None,
        "totalBytesProcessed": "456789",
        "jobComplete": True,
        "cacheHit": False,
    }

def query_request(query, parameters):
    return {
        "query": query,
        "timeoutMs": 10000,
        "useQueryCache": True,
        "useLegacySql": False,
        "parameterMode": "NAMED",
        "queryParameters": parameters,
    }

def assert_valid_data(data):
    assert isinstance(data, QueryData)
    assert len(data) == 3
    assert data.total == 3
    assert data.complete
    assert data[0] == {"name": "Heidi", "age": 36, "score": 7.65, "active": True}
    assert data[1] == {"name": "Aaron", "age": 42, "score": 8.15, "active": False}
    assert data[2] == {"name": "Sally", "age": None, "score": None, "active": None}

@pytest.fixture()
def bq(mock_service):
    return mock_service(bq_ops)

@pytest.mark.parametrize("clause,params,expected", [
    ("WHERE name = @name", {"name": "Testy McTesterson"},
     [{"name": "name", "parameterType": {"type": "STRING"}, "parameterValue": {"value": "Testy McTesterson"}}]),
    ("WHERE age > @age", {"age": 35},
     [{"name": "age", "parameterType": {"type": "INT64"}, "parameterValue": {"value": 35}}]),
    ("WHERE score > @score", {"score": 90.0},
     [{"name": "score", "parameterType": {"type": "FLOAT64"}, "parameterValue": {"value": 90.0}}]),
    ("WHERE active = @active", {"active": True},
     [{"name": "active", "parameterType": {"type": "BOOL"}, "parameterValue": {"value": True}}]),
    ("WHERE active = @active", {"active": False},
     [{"name": "active", "parameterType": {"type": "BOOL"}, "parameterValue": {"value": False}}]),
])
def test_query_named_scalar_params(bq, clause, params, expected):
    method = respond(bq, "jobs", "query", response=query_data_gapi())
    data = Project().query(f"{QUERY} {clause}", params=params)
    method.assert_called_once_with(projectId=PROJECT, body=query_request(f"{QUERY} {clause}", expected))
    assert_valid_data(data)

def test_query_date_param(bq):
    today = datetime.date.today()
    method = respond(bq, "jobs", "query", response=query_data_gapi())
    data = Project().query(f"{QUERY} WHERE create_date = @date", params={"date": today})
    expected = [{"name": "date", "parameterType": {"type": "DATE"},
                 "parameterValue": {"value": today.isoformat()}}]
    method.assert_called_once_with(projectId=PROJECT,
                                   body=query_request(f"{QUERY} WHERE create_date = @date", expected))
    assert_valid_data(data)

def test_query_timestamp_param(bq):
    now = datetime.datetime(2016, 10, 17, 14, 5, 9, 123456, tzinfo=datetime.timezone(datetime.timedelta(hours=-7)))
    method = respond(bq, "jobs", "query", response=query_data_gapi())
    Project().query(f"{QUERY} WHERE update_timestamp < @time", params={"time": now})
    expected = [{"name": "time", "parameterType": {"type": "TIMESTAMP"},
                 "parameterValue": {"value": "2016-10-17 14:05:09.123-07:00"}}]
    method.assert_called_once_with(projectId=PROJECT,
                                   body=query_request(f"{QUERY} WHERE update_timestamp < @time", expected))

def test_query_many_params_keep_order(bq):
    today = datetime.date(2016, 10, 17)
    now = datetime.datetime(2016, 10, 17, 1, 2, 3, tzinfo=datetime.timezone.utc)
    respond(bq, "jobs", "query", response=query_data_gapi())
    Project().query(QUERY, params={"name": "Testy McTesterson", "age": 35, "score": 90.0,
                                   "active": True, "date": today, "time": now})
    body = bq.jobs.return_value.query.call_args.kwargs["body"]
    assert [p["name"] for p in body["queryParameters"]] == ["name", "age", "score", "active", "date", "time"]
    assert [p["parameterType"]["type"] for p in body["queryParameters"]] == \
        ["STRING", "INT64", "FLOAT64", "BOOL", "DATE", "TIMESTAMP"]
    assert body["queryParameters"][5]["parameterValue"] == {"value": "2016-10-17 01:02:03.000+00:00"}

def test_query_array_param(bq):
    method = respond(bq, "jobs", "query", response=query_data_gapi())
    Project().query(f"{QUERY} WHERE name IN UNNEST(@names)", params={"names": ["name1", "name2", "name3"]})
    expected = [{
        "name": "names",
        "parameterType": {"type": "ARRAY", "arrayType": {"type": "STRING"}},
        "parameterValue": {"arrayValues": [{"value": "name1"}, {"value": "name2"}, {"value": "name3"}]},
    }]
    method.assert_called_once_with(projectId=PROJECT,
                                   body=query_request(f"{QUERY} WHERE name IN UNNEST(@names)", expected))

def test_query_struct_param(bq):
    method = respond(bq, "jobs", "query", response=query_data_gapi())
    meta = {"name": "Testy McTesterson", "age": 42, "active": False, "score": 98.7}
    Project().query(f"{QUERY} WHERE meta = @meta", params={"meta": meta})
    expected = [{
        "name": "meta",
        "parameterType": {"type": "STRUCT", "structTypes": [
            {"name": "name", "type": {"type": "STRING"}},
            {"name": "age", "type": {"type": "INT64"}},
            {"name": "active", "type": {"type": "BOOL"}},
            {"name": "score", "type": {"type": "FLOAT64"}},
        ]},
        "parameterValue": {"structValues": {
            "name": {"value": "Testy McTesterson"},
            "age": {"value": 42},
            "active": {"value": False},
            "score": {"value": 98.7},
        }},
    }]
    method.assert_called_once_with(projectId=PROJECT, body=query_request(f"{QUERY} WHERE meta = @meta", expected))

def test_query_positional_params(bq):
    respond(bq, "jobs", "query", response=query_data_gapi())
    Project().query(f"{QUERY} WHERE name = ? AND age > ?", params=["Testy McTesterson", 35])
    body = bq.jobs.return_value.query.call_args.kwargs["body"]
    assert body["parameterMode"] == "POSITIONAL"
    assert body["queryParameters"] == [
        {"parameterType": {"type": "STRING"}, "parameterValue": {"value": "Testy McTesterson"}},
        {"parameterType": {"type": "INT64"}, "parameterValue": {"value": 35}},
    ]

def test_query_without_params_has_no_mode(bq):
    respond(bq, "jobs", "query", response=query_data_gapi())
    Project().query(QUERY, max=10, dataset="some_dataset")
    body = bq.jobs.return_value.query.call_args.kwargs["body"]
    assert "parameterMode" not in body
    assert body["maxResults"] == 10
    assert body["defaultDataset"] == {"datasetId": "some_dataset", "projectId": PROJECT}

def test_params_with_legacy_sql_rejected(bq):
    with pytest.raises(ValueError):
        Project().query(QUERY, params={"age": 35}, legacy_sql=True)

def test_param_type_inference():
    assert to_query_param(Decimal("1.25"), "n") == {
        "name": "n", "parameterType": {"type": "NUMERIC"}, "parameterValue": {"value": "1.25"}}
    assert to_query_param(b"\x00\x01") == {
        "parameterType": {"type": "BYTES"}, "parameterValue": {"value": "AAE="}}
    assert to_query_param(datetime.time(13, 30, 5)) == {
        "parameterType": {"type": "TIME"}, "parameterValue": {"value": "13:30:05.000000"}}
    assert to_query_param(None) == {"parameterType": {"type": "STRING"}, "parameterValue": {}}
    assert to_query_param([[1, 2], [3]])["parameterType"] == {
        "type": "ARRAY", "arrayType": {"type": "ARRAY", "arrayType": {"type": "INT64"}}}

def test_param_errors():
    with pytest.raises(ValueError):
        to_query_param([])
    with pytest.raises(TypeError):
        to_query_param(object())
    with pytest.raises(TypeError):
        query_params("age")

def dataset_gapi(dataset_id="my_dataset"):
    return {
        "kind": "bigquery#dataset",
        "etag": "etag123456789",
        "id": f"{PROJECT}:{dataset_id}",
        "datasetReference": {"datasetId": dataset_id, "projectId": PROJECT},
        "friendlyName": "My Dataset",
        "location": "US",
    }

def query_job_gapi(query):
    return {
        "kind": "bigquery#job",
        "id": f"{PROJECT}:job9876543210",
        "jobReference": {"projectId": PROJECT, "jobId": "job9876543210"},
        "configuration": {"query": {"query": query, "useLegacySql": False}},
        "status": {"state": "RUNNING"},
    }

@pytest.mark.parametrize("params,expected", [
    ({"name": "Testy McTesterson"},
     {"name": "name", "parameterType": {"type": "STRING"}, "parameterValue": {"value": "Testy McTesterson"}}),
    ({"age": 35},
     {"name": "age", "parameterType": {"type": "INT64"}, "parameterValue": {"value": 35}}),
    ({"score": 90.0},
     {"name": "score", "parameterType": {"type": "FLOAT64"}, "parameterValue": {"value": 90.0}}),
    ({"active": False},
     {"name": "active", "parameterType": {"type": "BOOL"}, "parameterValue": {"value": False}}),
])
def test_dataset_query_job_named_params(bq, params, expected):
    query = f"{QUERY} WHERE x = @{next(iter(params))}"
    method = respond(bq, "jobs", "insert", response=query_job_gapi(query))
    dataset = Dataset.from_base(dataset_gapi())
    job = dataset.query_job(query, params=params)
    method.assert_called_once_with(projectId=PROJECT, body={"configuration": {"query": {
        "query": query,
        "priority": "INTERACTIVE",
        "useQueryCache": True,
        "defaultDataset": {"datasetId": "my_dataset", "projectId": PROJECT},
        "useLegacySql": False,
        "parameterMode": "NAMED",
        "queryParameters": [expected],
    }}})
    assert isinstance(job, QueryJob)
    assert job.job_id == "job9876543210"
    assert job.running()

def test_dataset_query_sets_default_dataset(bq):
    method = respond(bq, "jobs", "query", response=query_data_gapi())
    data = Dataset.from_base(dataset_gapi()).query("SELECT * FROM users WHERE age > @age", params={"age": 35})
    body = method.call_args.kwargs["body"]
    assert body["defaultDataset"] == {"datasetId": "my_dataset", "projectId": PROJECT}
    assert_valid_data(data)

def test_query_job_destination_and_dispositions(bq):
    respond(bq, "jobs", "insert", response=query_job_gapi(QUERY))
    Project().query_job(QUERY, table="other-project:target.results", create="needed",
                        write="truncate", priority="batch")
    config = bq.jobs.return_value.insert.call_args.kwargs["body"]["configuration"]["query"]
    assert config["priority"] == "BATCH"
    assert config["destinationTable"] == {"projectId": "other-project", "datasetId": "target", "tableId": "results"}
    assert config["createDisposition"] == "CREATE_IF_NEEDED"
    assert config["writeDisposition"] == "WRITE_TRUNCATE"

def test_query_job_bad_disposition(bq):
    with pytest.raises(ValueError):
        Project().query_job(QUERY, write="sometimes")

def test_query_job_results_paging(bq):
    job = QueryJob.from_base(query_job_gapi(QUERY))
    first = query_data_gapi()
    first["pageToken"] = "token2"
    second = query_data_gapi()
    respond(bq, "jobs", "getQueryResults", side_effect=[first, second])
    data = job.query_results(max=3)
    assert data.has_next()
    rows = list(data.all())
    assert len(rows) == 6
    calls = bq.jobs.return_value.getQueryResults.call_args_list
    assert calls[0].kwargs == {"projectId": PROJECT, "jobId": "job9876543210", "maxResults": 3}
    assert calls[1].kwargs == {"projectId": PROJECT, "jobId": "job9876543210", "pageToken": "token2"}
