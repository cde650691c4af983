import pytest

from infrachat.provisioning.normalizer import FlowError, extract_flow_error, parse_bucket_list


def _bucket(*children):
    return {"Bucket": list(children)}


def _listing(*buckets):
    return {
        "body": [
            {"?xml": []},
            {"ListAllMyBucketsResult": [{"Owner": []}, {"Buckets": list(buckets)}]},
        ]
    }


def test_extract_flow_error_from_wrapped_envelope():
    payload = {
        "success-response": {
            "body": [
                {"?xml": []},
                {
                    "Error": [
                        {"Code": [{"#text": "InvalidBucketName"}]},
                        {"Message": [{"#text": "The specified bucket is not valid."}]},
                        {"RequestId": [{"#text": "abc"}]},
                    ]
                },
            ]
        }
    }
    err = extract_flow_error(payload)
    assert err == FlowError(code="InvalidBucketName", message="The specified bucket is not valid.")
    assert err.describe() == "AWS Error: InvalidBucketName - The specified bucket is not valid."


def test_extract_flow_error_from_bare_envelope_out_of_order():
    payload = {"body": [{"Error": [{"Message": [{"#text": "denied"}]}, {"Code": [{"#text": "AccessDenied"}]}]}]}
    assert extract_flow_error(payload) == FlowError(code="AccessDenied", message="denied")


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        "oops",
        {},
        {"body": "text"},
        {"success-response": {"body": [{}, {"Result": []}]}},
        _listing(),
    ],
)
def test_extract_flow_error_absent(payload):
    assert extract_flow_error(payload) is None


def test_parse_bucket_list():
    payload = _listing(
        _bucket({"Name": [{"#text": "alpha"}]}, {"CreationDate": [{"#text": "2024-03-05T10:20:30.000Z"}]}),
        _bucket(
            {"Name": [{"#text": "beta"}]},
            {"CreationDate": [{"#text": "2024-03-06T08:00:00+02:00"}]},
            {"BucketRegion": [{"#text": "eu-west-1"}]},
        ),
    )
    records = parse_bucket_list(payload)

    assert [r.name for r in records] == ["alpha", "beta"]
    assert records[0].id == "alpha"
    assert records[0].created_at == "2024-03-05T10:20:30+00:00"
    assert records[1].created_at == "2024-03-06T06:00:00+00:00"
    assert records[1].region == "eu-west-1"


def test_parse_bucket_list_missing_date_keeps_bucket():
    payload = _listing(
        _bucket({"Name": [{"#text": "no-date"}]}),
        _bucket({"Name": [{"#text": "bad-date"}]}, {"CreationDate": [{"#text": "yesterday"}]}),
    )
    records = parse_bucket_list(payload)

    assert [r.name for r in records] == ["no-date", "bad-date"]
    assert all(r.created_at is None for r in records)


def test_parse_bucket_list_drops_unnamed_entries():
    payload = _listing(
        _bucket({"CreationDate": [{"#text": "2024-01-01T00:00:00Z"}]}),
        _bucket({"Name": [{"#text": "  "}]}),
        {"NotABucket": []},
        _bucket({"Name": [{"#text": "kept"}]}),
    )
    assert [r.name for r in parse_bucket_list(payload)] == ["kept"]


def test_parse_bucket_list_wrapped_in_success_response():
    payload = {"success-response": _listing(_bucket({"Name": [{"#text": "wrapped"}]}))}
    assert [r.name for r in parse_bucket_list(payload)] == ["wrapped"]


@pytest.mark.parametrize(
    "payload",
    [
        None,
        {},
        {"body": []},
        {"body": [{}, {"ListAllMyBucketsResult": "x"}]},
        {"body": [{}, {"ListAllMyBucketsResult": [{}, {"Buckets": None}]}]},
        _listing(),
    ],
)
def test_parse_bucket_list_degrades_to_empty(payload):
    assert parse_bucket_list(payload) == []
