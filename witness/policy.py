"""Policies: the steps of a supply chain, who may sign them, and their verification."""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from cryptography import x509

from witness.constraints import TrustBundle
from witness.errors import (
    InvalidOptionError,
    MismatchArtifactError,
    NoCollectionsError,
    PolicyError,
    PolicyExpiredError,
    VerifyArtifactsFailedError,
)
from witness.step import (
    CollectionVerificationResult,
    RejectedCollection,
    Step,
    StepResult,
)

__all__ = [
    "POLICY_PREDICATE",
    "DEFAULT_SEARCH_DEPTH",
    "VerifiedSource",
    "Root",
    "PublicKey",
    "Policy",
    "trust_bundles_from_roots",
]

POLICY_PREDICATE = "https://witness.testifysec.com/policy/v0.1"
DEFAULT_SEARCH_DEPTH = 3

_EPOCH_START = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


class VerifiedSource(Protocol):
    """Finds verified collections for a step that refer to the given subjects."""

    def search(
        self, collection_name: str, subject_digests: list[str], attestations: list[str]
    ) -> list[CollectionVerificationResult]: ...


@dataclass
class Root:
    """A trusted root certificate (PEM or DER) with optional intermediates."""

    certificate: bytes
    intermediates: list[bytes] = field(default_factory=list)


@dataclass
class PublicKey:
    key_id: str
    key: bytes


def _parse_certificate(data: bytes) -> x509.Certificate:
    try:
        if b"-----BEGIN" in data:
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as err:
        raise ValueError(f"failed to parse certificate: {err}") from err


def trust_bundles_from_roots(roots: Mapping[str, Root] | None) -> dict[str, TrustBundle]:
    """Parse each root and its intermediates into trust bundles keyed by root id."""
    bundles: dict[str, TrustBundle] = {}
    for root_id, root in (roots or {}).items():
        bundles[root_id] = TrustBundle(
            root=_parse_certificate(root.certificate),
            intermediates=[_parse_certificate(raw) for raw in root.intermediates],
        )
    return bundles


def _as_aware(moment: datetime.datetime) -> datetime.datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=datetime.timezone.utc)
    return moment


def _digests_equal(material: Any, artifact: Any) -> bool:
    """True when the sets share a digest and no shared algorithm disagrees."""
    equal = getattr(material, "equal", None)
    if callable(equal):
        return bool(equal(artifact))
    matched = False
    for algorithm, digest in material.items():
        if algorithm not in artifact:
            continue
        if artifact[algorithm] != digest:
            return False
        matched = True
    return matched


def _compare_artifacts(materials: Mapping[str, Any], artifacts: Mapping[str, Any]) -> None:
    for path, material in materials.items():
        if path not in artifacts:
            continue
        artifact = artifacts[path]
        if not _digests_equal(material, artifact):
            raise MismatchArtifactError(artifact=artifact, material=material, path=path)


def _verify_collection_artifacts(
    step: Step,
    collection: CollectionVerificationResult,
    results_by_step: Mapping[str, StepResult],
) -> None:
    materials = collection.collection.materials() or {}
    reasons: list[str] = []
    for artifacts_from in step.artifacts_from:
        source_result = results_by_step.get(artifacts_from)
        accepted = []
        for candidate in source_result.passed if source_result else []:
            try:
                _compare_artifacts(materials, candidate.collection.artifacts() or {})
            except MismatchArtifactError as err:
                reasons.append(str(err))
                break
            accepted.append(candidate)
        if not accepted:
            raise VerifyArtifactsFailedError(reasons)


@dataclass
class Policy:
    """A signed description of the steps that must produce trusted collections."""

    expires: datetime.datetime = _EPOCH_START
    roots: dict[str, Root] = field(default_factory=dict)
    timestamp_authorities: dict[str, Root] = field(default_factory=dict)
    public_keys: dict[str, PublicKey] = field(default_factory=dict)
    steps: dict[str, Step] = field(default_factory=dict)

    def trust_bundles(self) -> dict[str, TrustBundle]:
        """Return the policy's x509 roots and intermediates keyed by root id."""
        return trust_bundles_from_roots(self.roots)

    def timestamp_authority_trust_bundles(self) -> dict[str, TrustBundle]:
        return trust_bundles_from_roots(self.timestamp_authorities)

    def verify(
        self,
        verified_source: VerifiedSource | None,
        subject_digests: Iterable[str] | None,
        search_depth: int = DEFAULT_SEARCH_DEPTH,
    ) -> tuple[bool, dict[str, StepResult]]:
        """Verify the policy against collections found through ``verified_source``.

        Returns whether every step passed and the result of each step. Raises
        InvalidOptionError for bad arguments and PolicyExpiredError once expired.
        """
        digests = list(subject_digests or [])
        if verified_source is None:
            raise InvalidOptionError(
                "verified source", "a verified attestation source is required"
            )
        if not digests:
            raise InvalidOptionError(
                "subject digests", "at least one subject digest is required"
            )
        if search_depth < 1:
            raise InvalidOptionError("search depth", "search depth must be at least 1")

        if datetime.datetime.now(datetime.timezone.utc) > _as_aware(self.expires):
            raise PolicyExpiredError(self.expires)

        trust_bundles = self.trust_bundles()
        attestations_by_step = {
            name: [att.type for att in step.attestations]
            for name, step in self.steps.items()
        }

        results_by_step: dict[str, StepResult] = {}
        for _ in range(search_depth):
            for step_name, step in self.steps.items():
                collections = list(
                    verified_source.search(
                        step_name, digests, attestations_by_step.get(step_name, [])
                    )
                )
                if not collections:
                    collections = [
                        CollectionVerificationResult(
                            errors=[NoCollectionsError(step_name)]
                        )
                    ]

                checked = step.check_functionaries(collections, trust_bundles)
                step_result = step.validate_attestations(checked.passed)
                step_result.rejected.extend(checked.rejected)

                existing = results_by_step.get(step_name)
                if existing is None or existing.step == "":
                    results_by_step[step_name] = step_result
                else:
                    existing.passed.extend(step_result.passed)
                    existing.rejected.extend(step_result.rejected)

                for coll in step_result.passed:
                    back_refs = getattr(coll.collection, "back_refs", None)
                    if not callable(back_refs):
                        continue
                    for digest_set in (back_refs() or {}).values():
                        digests.extend(digest_set.values())

        try:
            results_by_step = self._verify_artifacts(results_by_step)
        except PolicyError as err:
            raise PolicyError(f"failed to verify artifacts: {err}") from err

        passed = True
        for result in results_by_step.values():
            if not result.analyze():
                passed = False
        return passed, results_by_step

    def _verify_artifacts(
        self, results_by_step: dict[str, StepResult]
    ) -> dict[str, StepResult]:
        """Check each step's materials against the artifacts of the steps it draws on."""
        for step in self.steps.values():
            result = results_by_step.get(step.name)
            if result is None:
                raise PolicyError(f"failed to find step {step.name} in step results map")
            if not result.passed:
                result.rejected.append(
                    RejectedCollection(
                        None,
                        PolicyError(
                            f"failed to verify artifacts for step {step.name}: "
                            f"no passed collections present"
                        ),
                    )
                )
                continue

            accepted = False
            reasons: list[str] = []
            for collection in result.passed:
                try:
                    _verify_collection_artifacts(step, collection, results_by_step)
                except PolicyError as err:
                    reasons.append(str(err))
                else:
                    accepted = True

            if not accepted:
                message = "\n".join(
                    [f"failed to verify artifacts for step {step.name}: ", *reasons]
                )
                result.rejected.append(RejectedCollection(None, PolicyError(message)))
                result.passed = []
        return results_by_step