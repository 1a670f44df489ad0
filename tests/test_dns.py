import pytest

from brettgcp import dns

from conftest import PROJECT, respond, http_error

SOA = "ns-cloud-b1.googledomains.com. cloud-dns-hostmaster.google.com. 1 21600 3600 1209600 300"

def zone_gapi():
    return {"kind": "dns#managedZone", "id": "1234", "name": "example-com", "dnsName": "example.com.",
            "nameServers": ["ns-cloud-b1.googledomains.com."]}

def rr(name, type, ttl, *data):
    return {"kind": "dns#resourceRecordSet", "name": name, "type": type, "ttl": ttl, "rrdatas": list(data)}

@pytest.fixture()
def svc(mock_service):
    return mock_service(dns)

@pytest.fixture()
def zone():
    z = dns.Zone.from_base(zone_gapi())
    z.project = PROJECT
    return z

def test_create_zone_adds_trailing_dot(svc):
    method = respond(svc, "managedZones", "create", response=zone_gapi())
    z = dns.create_zone("example-com", "example.com", description="Example")
    assert method.call_args.kwargs == {"project": PROJECT, "body": {
        "name": "example-com", "dnsName": "example.com.", "description": "Example"}}
    assert z.dns == "example.com."
    assert z.project == PROJECT

def test_zone_missing(svc):
    respond(svc, "managedZones", "get", side_effect=http_error(404, "The 'parameters.managedZone' resource named 'x' does not exist."))
    assert dns.zone("x") is None

def test_fqdn(zone):
    assert zone.fqdn("www") == "www.example.com."
    assert zone.fqdn("@") == "example.com."
    assert zone.fqdn("") == "example.com."
    assert zone.fqdn("other.org.") == "other.org."

def test_records_filter(svc, zone):
    method = respond(svc, "resourceRecordSets", "list", response={"rrsets": [rr("www.example.com.", "A", 300, "1.2.3.4")]})
    records = zone.records("www", "a")
    assert method.call_args.kwargs == {"project": PROJECT, "managedZone": "example-com",
                                       "name": "www.example.com.", "type": "A"}
    assert records[0].data == ["1.2.3.4"]
    with pytest.raises(ValueError):
        zone.records(type="A")

def test_add_increments_soa(svc, zone):
    respond(svc, "resourceRecordSets", "list", response={"rrsets": [rr("example.com.", "SOA", 21600, SOA)]})
    create = respond(svc, "changes", "create", response={"id": "2", "status": "pending"})
    change = zone.add("www", "A", 86400, "1.2.3.4")
    assert change.pending()
    body = create.call_args.kwargs["body"]
    assert body["additions"] == [
        rr("www.example.com.", "A", 86400, "1.2.3.4"),
        rr("example.com.", "SOA", 21600, SOA.replace(" 1 ", " 2 ")),
    ]
    assert body["deletions"] == [rr("example.com.", "SOA", 21600, SOA)]

def test_soa_serial_callable(svc, zone):
    respond(svc, "resourceRecordSets", "list", response={"rrsets": [rr("example.com.", "SOA", 21600, SOA)]})
    create = respond(svc, "changes", "create", response={"id": "3", "status": "done"})
    zone.add("www", "A", 300, ["1.2.3.4"], soa_serial=lambda s: s + 100)
    assert create.call_args.kwargs["body"]["additions"][1]["rrdatas"] == [SOA.replace(" 1 ", " 101 ")]

def test_skip_soa(svc, zone):
    listing = respond(svc, "resourceRecordSets", "list", response={})
    create = respond(svc, "changes", "create", response={"id": "4", "status": "done"})
    zone.add("www", "A", 300, "1.2.3.4", skip_soa=True)
    assert not listing.called
    assert create.call_args.kwargs["body"] == {"additions": [rr("www.example.com.", "A", 300, "1.2.3.4")],
                                               "deletions": []}

def test_replace(svc, zone):
    respond(svc, "resourceRecordSets", "list", response={"rrsets": [rr("mail.example.com.", "MX", 3600, "10 old.example.com.")]})
    create = respond(svc, "changes", "create", response={"id": "5", "status": "done"})
    zone.replace("mail", "MX", 3600, ["10 mail1.example.com."], skip_soa=True)
    body = create.call_args.kwargs["body"]
    assert body["deletions"] == [rr("mail.example.com.", "MX", 3600, "10 old.example.com.")]
    assert body["additions"] == [rr("mail.example.com.", "MX", 3600, "10 mail1.example.com.")]

def test_modify(svc, zone):
    respond(svc, "resourceRecordSets", "list", response={"rrsets": [rr("www.example.com.", "CNAME", 300, "example.com.")]})
    create = respond(svc, "changes", "create", response={"id": "6", "status": "done"})
    zone.modify("www", "CNAME", lambda r: setattr(r, "ttl", 3600), skip_soa=True)
    body = create.call_args.kwargs["body"]
    assert body["additions"][0]["ttl"] == 3600
    assert body["deletions"][0]["ttl"] == 300

def test_nothing_to_change(svc, zone):
    respond(svc, "resourceRecordSets", "list", response={})
    create = respond(svc, "changes", "create", response={})
    assert zone.remove("gone", "A") is None
    assert not create.called

def test_change_wait_until_done(svc, zone, monkeypatch):
    sleeps = []
    monkeypatch.setattr(dns.time, "sleep", sleeps.append)
    get = respond(svc, "changes", "get", side_effect=[{"id": "7", "status": "pending"},
                                                      {"id": "7", "status": "done"}])
    change = zone._change({"id": "7", "status": "pending"})
    change.wait_until_done()
    assert change.done()
    assert sleeps == [1.0, 2.0]
    assert get.call_args.kwargs == {"project": PROJECT, "managedZone": "example-com", "changeId": "7"}

def test_changes_order(svc, zone):
    method = respond(svc, "changes", "list", response={"changes": [{"id": "1", "status": "done"}]})
    changes = zone.changes(order="desc")
    assert changes[0].zone is zone
    assert method.call_args.kwargs["sortOrder"] == "descending"
    with pytest.raises(ValueError):
        zone.changes(order="sideways")

def test_force_delete(svc, zone):
    respond(svc, "resourceRecordSets", "list", response={"rrsets": [
        rr("example.com.", "NS", 21600, "ns-cloud-b1.googledomains.com."),
        rr("example.com.", "SOA", 21600, SOA),
        rr("www.example.com.", "A", 300, "1.2.3.4"),
    ]})
    create = respond(svc, "changes", "create", response={"id": "8", "status": "done"})
    delete = respond(svc, "managedZones", "delete", response=None)
    assert zone.delete(force=True)
    assert create.call_args.kwargs["body"]["deletions"] == [rr("www.example.com.", "A", 300, "1.2.3.4")]
    assert delete.call_args.kwargs == {"project": PROJECT, "managedZone": "example-com"}
