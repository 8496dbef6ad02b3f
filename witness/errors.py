"""Errors raised while evaluating and verifying policies."""

from __future__ import annotations

import datetime
import json
from collections.abc import Iterable
from typing import Any

__all__ = [
    "PolicyError",
    "VerifyArtifactsFailedError",
    "NoCollectionsError",
    "MissingAttestationError",
    "PolicyExpiredError",
    "KeyIDMismatchError",
    "UnknownStepError",
    "ArtifactCycleError",
    "MismatchArtifactError",
    "RegoInvalidDataError",
    "PolicyDeniedError",
    "ConstraintCheckFailedError",
    "InvalidOptionError",
]


class PolicyError(Exception):
    """Base class of all policy errors."""


class VerifyArtifactsFailedError(PolicyError):
    def __init__(self, reasons: Iterable[str]) -> None:
        self.reasons = list(reasons)
        super().__init__(f"failed to verify artifacts: [{' '.join(self.reasons)}]")


class NoCollectionsError(PolicyError):
    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__(f"no collections found for step {step}")


class MissingAttestationError(PolicyError):
    def __init__(self, step: str, attestation: str) -> None:
        self.step = step
        self.attestation = attestation
        super().__init__(f"missing attestation in collection for step {step}: {attestation}")


class PolicyExpiredError(PolicyError):
    def __init__(self, expires: datetime.datetime) -> None:
        self.expires = expires
        super().__init__(f"policy expired on {expires}")


class KeyIDMismatchError(PolicyError):
    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"public key in policy has expected key id {expected} but got {actual}"
        )


class UnknownStepError(PolicyError):
    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__(f"policy has no step named {step}")


class ArtifactCycleError(PolicyError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"cycle detected in step's artifact dependencies: {path}")


class MismatchArtifactError(PolicyError):
    def __init__(self, artifact: Any, material: Any, path: str) -> None:
        self.artifact = artifact
        self.material = material
        self.path = path
        super().__init__(f"mismatched digests for {path}")


class RegoInvalidDataError(PolicyError):
    def __init__(self, path: str, expected: str, actual: Any) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"invalid data from rego at {path}, expected {expected} "
            f"but got {type(actual).__name__}"
        )


class PolicyDeniedError(PolicyError):
    def __init__(self, reasons: Iterable[str]) -> None:
        self.reasons = list(reasons)
        super().__init__(f"policy was denied due to: {', '.join(self.reasons)}")


class ConstraintCheckFailedError(PolicyError):
    """A certificate failed one or more constraints; ``errors`` holds each failure."""

    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors = list(errors)
        quoted = " ".join(json.dumps(str(e), ensure_ascii=True) for e in self.errors)
        super().__init__(f"cert failed constraints check: [{quoted}]")


class InvalidOptionError(PolicyError):
    def __init__(self, option: str, reason: str) -> None:
        self.option = option
        self.reason = reason
        super().__init__(f"invalid option ({option}): {reason}")