import datetime

import pytest

from witness import errors


def test_verify_artifacts_failed_message():
    err = errors.VerifyArtifactsFailedError(["mismatched digests for testfile"])
    assert str(err) == "failed to verify artifacts: [mismatched digests for testfile]"
    assert err.reasons == ["mismatched digests for testfile"]


def test_no_collections():
    err = errors.NoCollectionsError("build")
    assert str(err).startswith("no collections found for step")
    assert str(err).endswith("build")
    assert err.step == "build"


def test_missing_attestation():
    err = errors.MissingAttestationError("step1", "dummy-mats")
    assert str(err) == "missing attestation in collection for step step1: dummy-mats"


def test_policy_expired_mentions_time():
    expires = datetime.datetime(2020, 1, 2, 3, 4, 5)
    err = errors.PolicyExpiredError(expires)
    assert str(err).startswith("policy expired on")
    assert str(expires) in str(err)
    assert err.expires == expires


def test_key_id_mismatch():
    err = errors.KeyIDMismatchError("expected-id", "actual-id")
    message = str(err)
    assert message.startswith("public key in policy has expected key id")
    assert message.index("expected-id") < message.index("actual-id")
    assert (err.expected, err.actual) == ("expected-id", "actual-id")


def test_unknown_step_and_cycle():
    assert str(errors.UnknownStepError("deploy")).endswith("deploy")
    cycle = errors.ArtifactCycleError("a -> b -> a")
    assert str(cycle).startswith("cycle detected in step's artifact dependencies")
    assert cycle.path == "a -> b -> a"


def test_mismatch_artifact_keeps_digests():
    err = errors.MismatchArtifactError({"sha256": "a"}, {"sha256": "b"}, "testfile")
    assert "mismatched digests for testfile" in str(err)
    assert err.artifact == {"sha256": "a"}
    assert err.material == {"sha256": "b"}


def test_rego_invalid_data_names_type():
    err = errors.RegoInvalidDataError("data.witness.test.deny", "string", 0)
    assert str(err).startswith("invalid data from rego at data.witness.test.deny")
    assert str(err).endswith(" but got int")
    assert err.actual == 0


def test_policy_denied_joins_reasons():
    err = errors.PolicyDeniedError(["unexpected cmd", "exitcode not 0"])
    assert str(err).startswith("policy was denied due to:")
    assert "unexpected cmd, exitcode not 0" in str(err)


def test_constraint_check_failed_quotes_errors():
    err = errors.ConstraintCheckFailedError([ValueError("bad cn")])
    assert str(err) == 'cert failed constraints check: ["bad cn"]'
    assert len(err.errors) == 1


def test_invalid_option():
    err = errors.InvalidOptionError("search depth", "search depth must be at least 1")
    assert str(err).startswith("invalid option (search depth)")
    assert str(err).endswith("search depth must be at least 1")


@pytest.mark.parametrize(
    ("err", "message"),
    [
        (errors.NoCollectionsError("s"), "no collections found for step s"),
        (errors.UnknownStepError("s"), "policy has no step named s"),
        (errors.InvalidOptionError("o", "r"), "invalid option (o): r"),
        (errors.PolicyDeniedError(["r"]), "policy was denied due to: r"),
    ],
)
def test_all_errors_catchable_as_policy_error(err, message):
    with pytest.raises(errors.PolicyError) as info:
        raise err
    assert info.value is err
    assert str(info.value) == message