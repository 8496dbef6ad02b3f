# witness

Verify software supply-chain attestation collections against a policy.

`witness` builds in-toto statements, describes which functionaries may sign
each step of a build, checks signer certificates against constraints, and
decides whether the collections found for each step satisfy a policy.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `witness.statement`: `Statement`, `Subject`, `new_statement()` and
  `digest_set_to_subject()`. A digest set is a mapping of algorithm name to
  digest, or any object with a `to_name_map()` method. `Statement.to_dict()`
  returns the statement in its JSON shape (`_type`, `subject`, `predicateType`,
  `predicate`). `PAYLOAD_TYPE` and `STATEMENT_TYPE` are the in-toto constants.
- `witness.policy`: `Policy`, `Root`, `PublicKey`, `trust_bundles_from_roots()`
  and the `VerifiedSource` protocol. `Policy.verify(verified_source,
  subject_digests, search_depth=3)` searches the source for each step, returns
  `(passed, results_by_step)` and raises `InvalidOptionError` for a missing
  source, no subject digests or a depth below 1, and `PolicyExpiredError` once
  `expires` has passed. Materials of a step are compared with the artifacts of
  the steps named in its `artifacts_from`.
- `witness.step`: `Step`, `Functionary`, `Attestation`, `RegoPolicy`,
  `CollectionVerificationResult`, `RejectedCollection`, `StepResult` and
  `COLLECTION_TYPE`. `Step.check_functionaries()` sorts collections by whether
  a trusted functionary signed them; `Step.validate_attestations()` checks that
  the expected attestations are present. `StepResult` offers `analyze()`,
  `has_passed()`, `has_errors()`, and its `str()` lists the rejection reasons.
- `witness.constraints`: `CertConstraint`, `Extensions`, `TrustBundle`, the
  `X509Verifier` protocol and `check_cert_constraint()`. A single `"*"`
  constraint allows any value; extension constraints are glob patterns
  matched against Fulcio certificate extensions.
- `witness.errors`: the exceptions raised during verification, all derived
  from `PolicyError`.
- `witness.registry` and `witness.option`: a `Registry` of named factories,
  each with typed `ConfigOption`s (`int_config_option()`,
  `string_config_option()`, `string_slice_config_option()`,
  `bool_config_option()`, `duration_config_option()`) whose defaults are
  applied by `Registry.new_entity()`.
- `witness.log`: a swappable library logger, silent by default.

## Verifying a policy

A verified source returns `CollectionVerificationResult`s. Verifiers need a
`key_id()` method; collections need a `name`, `attestations`, `materials()`
and `artifacts()`.

```python
import datetime
from dataclasses import dataclass, field

from witness.policy import Policy
from witness.statement import new_statement
from witness.step import COLLECTION_TYPE, CollectionVerificationResult, Functionary, Step


class KeyVerifier:
    def key_id(self):
        return "key-1"


@dataclass
class Collection:
    name: str
    attestations: list = field(default_factory=list)

    def materials(self):
        return {}

    def artifacts(self):
        return {}


class Source:
    def search(self, collection_name, subject_digests, attestations):
        return [
            CollectionVerificationResult(
                statement=new_statement(COLLECTION_TYPE, b"{}", {}),
                collection=Collection(collection_name),
                verifiers=[KeyVerifier()],
            )
        ]


policy = Policy(
    expires=datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=1),
    steps={"build": Step(name="build", functionaries=[Functionary(public_key_id="key-1")])},
)
passed, results = policy.verify(Source(), ["abc123"])
assert passed
```

## Registry example

```python
from witness.option import int_config_option
from witness.registry import Registry


class Attestor:
    retries = 0


def set_retries(attestor, value):
    attestor.retries = value
    return attestor


registry = Registry()
registry.register(
    "example",
    Attestor,
    int_config_option("retries", "number of retries", 3, set_retries),
)
attestor = registry.new_entity("example")
assert attestor.retries == 3
```

## Logging

Library logging goes through `witness.log`. Any object with the `Logger`
methods can be installed:

```python
from witness import log

log.set_logger(my_logger)
```

## What this package does not do

- It does not sign or verify signatures, and it does not read envelopes:
  verifiers and verified collections are supplied by the caller.
- It does not evaluate rego policies itself. An attestation that carries rego
  policies is rejected unless the step is given a `rego_evaluator`, a callable
  that receives the attestor and its policies and raises to deny.
- It has no command-line tool and no storage of attestations.