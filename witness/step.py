"""Policy steps, their functionaries, and the results of checking collections."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from witness import log
from witness.constraints import CertConstraint, TrustBundle, X509Verifier
from witness.errors import MissingAttestationError, PolicyError
from witness.statement import Statement

__all__ = [
    "COLLECTION_TYPE",
    "RegoPolicy",
    "Attestation",
    "Functionary",
    "Step",
    "CollectionVerificationResult",
    "RejectedCollection",
    "StepResult",
]

COLLECTION_TYPE = "https://witness.testifysec.com/attestation-collection/v0.1"


@dataclass
class RegoPolicy:
    module: bytes
    name: str


@dataclass
class Attestation:
    """An attestation type a step expects, with the rego policies it must pass."""

    type: str
    rego_policies: list[RegoPolicy] = field(default_factory=list)


@dataclass
class Functionary:
    """A party trusted to sign collections, by key id or by certificate."""

    type: str = ""
    cert_constraint: CertConstraint = field(default_factory=CertConstraint)
    public_key_id: str = ""

    def validate(
        self, verifier: Any, trust_bundles: Mapping[str, TrustBundle] | None
    ) -> None:
        """Raise ValueError unless ``verifier`` is acceptable for this functionary."""
        try:
            verifier_id = verifier.key_id()
        except Exception as err:
            raise ValueError(f"could not get key id: {err}") from err

        if self.public_key_id and self.public_key_id == verifier_id:
            return

        if not isinstance(verifier, X509Verifier):
            raise ValueError(
                f"verifier with ID {verifier_id} is not a public key verifier "
                f"or a x509 verifier"
            )

        if not self.cert_constraint.roots:
            raise ValueError(
                f"verifier with ID {verifier_id} is an x509 verifier, but no trusted "
                f"roots provided in functionary"
            )

        try:
            self.cert_constraint.check(verifier, trust_bundles or {})
        except PolicyError as err:
            raise ValueError(
                f"verifier with ID {verifier_id} doesn't meet certificate constraint: {err}"
            ) from err


@dataclass
class CollectionVerificationResult:
    """A collection found for a step together with what verifying it produced."""

    statement: Statement | None = None
    collection: Any = None
    reference: str = ""
    verifiers: list[Any] = field(default_factory=list)
    errors: list[BaseException] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    valid_functionaries: list[Any] = field(default_factory=list)


@dataclass
class RejectedCollection:
    collection: CollectionVerificationResult | None
    reason: BaseException


@dataclass
class StepResult:
    """Collections that passed a step and those rejected, with the reasons."""

    step: str
    passed: list[CollectionVerificationResult] = field(default_factory=list)
    rejected: list[RejectedCollection] = field(default_factory=list)

    def analyze(self) -> bool:
        """Return whether the step passed: something passed and nothing erred."""
        passed = bool(self.passed)
        for coll in self.passed:
            name = getattr(coll.collection, "name", "")
            for warning in coll.warnings:
                log.debugf(
                    "Warning: Step: %s, Collection: %s, Warning: %s",
                    self.step,
                    name,
                    warning,
                )
            for err in coll.errors:
                passed = False
                log.errorf(
                    "Unexpected Error in Passed Collection: Step: %s, Collection: %s, "
                    "Error: %s",
                    self.step,
                    name,
                    err,
                )
        return passed

    def has_errors(self) -> bool:
        return bool(self.rejected)

    def has_passed(self) -> bool:
        return bool(self.passed)

    def __str__(self) -> str:
        reasons = "\n".join(str(reject.reason) for reject in self.rejected)
        return f"attestations for step {self.step} could not be used due to:\n{reasons}"


RegoEvaluator = Callable[[Any, list[RegoPolicy]], None]


@dataclass
class Step:
    """A step of a policy.

    ``rego_evaluator`` is called with an attestor and its rego policies and
    raises when they deny it; attestations with rego policies are rejected
    when no evaluator is set.
    """

    name: str
    functionaries: list[Functionary] = field(default_factory=list)
    attestations: list[Attestation] = field(default_factory=list)
    artifacts_from: list[str] = field(default_factory=list)
    rego_evaluator: RegoEvaluator | None = field(
        default=None, repr=False, compare=False
    )

    def check_functionaries(
        self,
        statements: list[CollectionVerificationResult],
        trust_bundles: Mapping[str, TrustBundle] | None,
    ) -> StepResult:
        """Sort collections by whether a trusted functionary signed them.

        Warnings and valid functionaries are recorded on each collection.
        """
        result = StepResult(step=self.name)
        for statement in statements:
            predicate_type = (
                statement.statement.predicate_type if statement.statement else ""
            )
            if predicate_type != COLLECTION_TYPE:
                result.rejected.append(
                    RejectedCollection(
                        statement,
                        PolicyError(
                            f"predicate type {predicate_type} is not a collection "
                            f"predicate type"
                        ),
                    )
                )

            if not statement.verifiers:
                result.rejected.append(
                    RejectedCollection(
                        statement,
                        PolicyError(
                            "no verifiers present to validate against collection verifiers"
                        ),
                    )
                )
                continue

            for verifier in statement.verifiers:
                for functionary in self.functionaries:
                    try:
                        functionary.validate(verifier, trust_bundles)
                    except ValueError as err:
                        statement.warnings.append(
                            f"failed to validate functionary of KeyID "
                            f"{functionary.public_key_id} in step {self.name}: {err}"
                        )
                        continue
                    if not any(v is verifier for v in statement.valid_functionaries):
                        statement.valid_functionaries.append(verifier)

            if statement.valid_functionaries:
                result.passed.append(statement)
            else:
                result.rejected.append(
                    RejectedCollection(
                        statement,
                        PolicyError(
                            f"no verifiers matched with allowed functionaries for step "
                            f"{self.name}"
                        ),
                    )
                )
        return result

    def _evaluate_rego(self, attestor: Any, policies: list[RegoPolicy]) -> None:
        if not policies:
            return
        if self.rego_evaluator is None:
            raise PolicyError(
                f"no rego evaluator available for {len(policies)} rego policies "
                f"in step {self.name}"
            )
        self.rego_evaluator(attestor, policies)

    def validate_attestations(
        self, collection_results: list[CollectionVerificationResult]
    ) -> StepResult:
        """Check that each collection holds the expected attestations and passes their policies."""
        result = StepResult(step=self.name)
        for collection in collection_results:
            coll = collection.collection
            coll_name = getattr(coll, "name", "")
            if coll_name != self.name and coll_name != "":
                log.debugf(
                    "Skipping collection %s as it is not for step %s", coll_name, self.name
                )
                continue

            reasons = [
                f"collection verification failed: {err}" for err in collection.errors
            ]
            passed = not reasons
            found = {
                att.type: att.attestation for att in getattr(coll, "attestations", [])
            }

            for expected in self.attestations:
                attestor = found.get(expected.type)
                if expected.type not in found:
                    passed = False
                    reasons.append(str(MissingAttestationError(self.name, expected.type)))
                try:
                    self._evaluate_rego(attestor, expected.rego_policies)
                except Exception as err:
                    passed = False
                    reasons.append(str(err))

            if passed:
                result.passed.append(collection)
            else:
                joined = ",\n - ".join(reasons)
                result.rejected.append(
                    RejectedCollection(
                        collection,
                        PolicyError(f"collection validation failed:\n - {joined}"),
                    )
                )
        return result