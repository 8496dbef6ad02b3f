"""in-toto statements that wrap a predicate with the subjects it covers."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "STATEMENT_TYPE",
    "PAYLOAD_TYPE",
    "Subject",
    "Statement",
    "new_statement",
    "digest_set_to_subject",
]

STATEMENT_TYPE = "https://in-toto.io/Statement/v0.1"
PAYLOAD_TYPE = "application/vnd.in-toto+json"


@dataclass
class Subject:
    name: str
    digest: dict[str, str]


@dataclass
class Statement:
    """A statement; ``predicate`` holds the raw JSON bytes of the predicate."""

    predicate_type: str
    predicate: bytes
    subject: list[Subject] = field(default_factory=list)
    type: str = STATEMENT_TYPE

    def to_dict(self) -> dict[str, Any]:
        """Return the statement in its JSON wire shape."""
        return {
            "_type": self.type,
            "subject": [{"name": s.name, "digest": dict(s.digest)} for s in self.subject],
            "predicateType": self.predicate_type,
            "predicate": json.loads(self.predicate) if self.predicate else None,
        }


def _name_map(digest_set: Any) -> dict[str, str]:
    to_name_map = getattr(digest_set, "to_name_map", None)
    if callable(to_name_map):
        return dict(to_name_map())
    if not isinstance(digest_set, Mapping):
        raise TypeError(f"digest set must be a mapping, got {type(digest_set).__name__}")
    digests = {}
    for algorithm, value in digest_set.items():
        if not isinstance(algorithm, str) or not isinstance(value, str):
            raise ValueError(f"unsupported digest entry {algorithm!r}: {value!r}")
        digests[algorithm] = value
    return digests


def digest_set_to_subject(name: str, digest_set: Any) -> Subject:
    """Build a subject from a digest set keyed by algorithm name.

    Objects with a ``to_name_map()`` method are converted through it.
    """
    return Subject(name=name, digest=_name_map(digest_set))


def new_statement(
    predicate_type: str, predicate: bytes | str, subjects: Mapping[str, Any]
) -> Statement:
    """Create a statement over ``subjects``, a mapping of name to digest set."""
    if isinstance(predicate, str):
        predicate = predicate.encode()
    return Statement(
        predicate_type=predicate_type,
        predicate=predicate,
        subject=[digest_set_to_subject(name, ds) for name, ds in subjects.items()],
    )