import json

import pytest

from witness.statement import (
    PAYLOAD_TYPE,
    Subject,
    digest_set_to_subject,
    new_statement,
)

PREDICATE_TYPE = "https://witness.testifysec.com/attestation-collection/v0.1"


class NamedDigests:
    def __init__(self, digests):
        self._digests = digests

    def to_name_map(self):
        return dict(self._digests)


def test_statement_type_fixed_by_format():
    stmt = new_statement(PREDICATE_TYPE, b"{}", {})
    assert stmt.type == "https://in-toto.io/Statement/v0.1"
    assert stmt.to_dict()["_type"] == "https://in-toto.io/Statement/v0.1"
    assert PAYLOAD_TYPE == "application/vnd.in-toto+json"


def test_new_statement_fields():
    stmt = new_statement(PREDICATE_TYPE, b'{"name": "step1"}', {"dummy": {"sha256": "dummy"}})
    assert stmt.type == "https://in-toto.io/Statement/v0.1"
    assert stmt.predicate_type == PREDICATE_TYPE
    assert stmt.subject == [Subject(name="dummy", digest={"sha256": "dummy"})]


def test_new_statement_without_subjects():
    stmt = new_statement(PREDICATE_TYPE, b"{}", {})
    assert stmt.subject == []
    assert stmt.to_dict()["subject"] == []


def test_to_dict_round_trips_through_json():
    predicate = {"name": "step1", "attestations": [1, 2]}
    stmt = new_statement(PREDICATE_TYPE, json.dumps(predicate), {"a": {"sha1": "x"}, "b": {"sha256": "y"}})
    data = json.loads(json.dumps(stmt.to_dict()))
    assert data["_type"] == "https://in-toto.io/Statement/v0.1"
    assert data["predicateType"] == PREDICATE_TYPE
    assert data["predicate"] == predicate
    assert data["subject"] == [
        {"name": "a", "digest": {"sha1": "x"}},
        {"name": "b", "digest": {"sha256": "y"}},
    ]


def test_str_predicate_stored_as_bytes():
    stmt = new_statement(PREDICATE_TYPE, '{"k": 1}', {})
    assert stmt.predicate == b'{"k": 1}'


def test_digest_set_uses_to_name_map():
    subject = digest_set_to_subject("file", NamedDigests({"sha256": "abc"}))
    assert subject == Subject(name="file", digest={"sha256": "abc"})


def test_digest_set_with_invalid_key_raises():
    with pytest.raises(ValueError):
        digest_set_to_subject("file", {1: "abc"})


def test_digest_set_error_propagates_to_statement():
    with pytest.raises(ValueError):
        new_statement(PREDICATE_TYPE, b"{}", {"file": {"sha256": 5}})


def test_non_mapping_digest_set_raises():
    with pytest.raises(TypeError):
        digest_set_to_subject("file", ["sha256"])