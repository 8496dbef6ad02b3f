"""Certificate constraints that functionaries in a policy place on signers."""

from __future__ import annotations

import functools
import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields
from typing import Protocol, runtime_checkable

from cryptography import x509
from cryptography.x509.oid import NameOID

from witness import log
from witness.errors import ConstraintCheckFailedError

__all__ = [
    "ALLOW_ALL_CONSTRAINT",
    "X509Verifier",
    "TrustBundle",
    "Extensions",
    "CertConstraint",
    "check_cert_constraint",
]

ALLOW_ALL_CONSTRAINT = "*"


@runtime_checkable
class X509Verifier(Protocol):
    """A verifier backed by an x509 certificate."""

    def key_id(self) -> str: ...

    def certificate(self) -> x509.Certificate: ...

    def belongs_to_root(self, root: x509.Certificate) -> None:
        """Raise if the certificate does not chain to ``root``."""
        ...


@dataclass
class TrustBundle:
    """A trusted root certificate and the intermediates issued under it."""

    root: x509.Certificate
    intermediates: list[x509.Certificate] = field(default_factory=list)


@dataclass
class Extensions:
    """Fulcio certificate extensions; as a constraint each field is a glob."""

    issuer: str = ""
    github_workflow_trigger: str = ""
    github_workflow_sha: str = ""
    github_workflow_name: str = ""
    github_workflow_repository: str = ""
    github_workflow_ref: str = ""
    build_signer_uri: str = ""
    build_signer_digest: str = ""
    runner_environment: str = ""
    source_repository_uri: str = ""
    source_repository_digest: str = ""
    source_repository_ref: str = ""
    source_repository_identifier: str = ""
    source_repository_owner_uri: str = ""
    source_repository_owner_identifier: str = ""
    build_config_uri: str = ""
    build_config_digest: str = ""
    build_trigger: str = ""
    run_invocation_uri: str = ""
    source_repository_visibility_at_signing: str = ""


_FULCIO_OID = "1.3.6.1.4.1.57264.1."

# Extensions whose value is the raw string.
_RAW_EXTENSIONS = {
    _FULCIO_OID + "1": "issuer",
    _FULCIO_OID + "2": "github_workflow_trigger",
    _FULCIO_OID + "3": "github_workflow_sha",
    _FULCIO_OID + "4": "github_workflow_name",
    _FULCIO_OID + "5": "github_workflow_repository",
    _FULCIO_OID + "6": "github_workflow_ref",
}

# Extensions whose value is a DER encoded UTF8String.
_DER_EXTENSIONS = {
    _FULCIO_OID + "8": "issuer",
    _FULCIO_OID + "9": "build_signer_uri",
    _FULCIO_OID + "10": "build_signer_digest",
    _FULCIO_OID + "11": "runner_environment",
    _FULCIO_OID + "12": "source_repository_uri",
    _FULCIO_OID + "13": "source_repository_digest",
    _FULCIO_OID + "14": "source_repository_ref",
    _FULCIO_OID + "15": "source_repository_identifier",
    _FULCIO_OID + "16": "source_repository_owner_uri",
    _FULCIO_OID + "17": "source_repository_owner_identifier",
    _FULCIO_OID + "18": "build_config_uri",
    _FULCIO_OID + "19": "build_config_digest",
    _FULCIO_OID + "20": "build_trigger",
    _FULCIO_OID + "21": "run_invocation_uri",
    _FULCIO_OID + "22": "source_repository_visibility_at_signing",
}

_UTF8_STRING_TAG = 0x0C


def _decode_der_utf8(data: bytes) -> str:
    if len(data) < 2 or data[0] != _UTF8_STRING_TAG:
        raise ValueError("extension value is not a DER UTF8String")
    length = data[1]
    offset = 2
    if length & 0x80:
        count = length & 0x7F
        if count == 0 or len(data) < 2 + count:
            raise ValueError("invalid DER length")
        length = int.from_bytes(data[2 : 2 + count], "big")
        offset = 2 + count
    if len(data) != offset + length:
        raise ValueError("DER value has trailing or missing bytes")
    return data[offset:].decode("utf-8")


def _parse_extensions(cert: x509.Certificate) -> Extensions:
    parsed = Extensions()
    for ext in cert.extensions:
        if not isinstance(ext.value, x509.UnrecognizedExtension):
            continue
        oid = ext.oid.dotted_string
        raw = ext.value.value
        if oid in _RAW_EXTENSIONS:
            setattr(parsed, _RAW_EXTENSIONS[oid], raw.decode("utf-8"))
        elif oid in _DER_EXTENSIONS:
            setattr(parsed, _DER_EXTENSIONS[oid], _decode_der_utf8(raw))
    return parsed


def _translate_glob(pattern: str, pos: int, in_braces: bool) -> tuple[str, int]:
    out: list[str] = []
    while pos < len(pattern):
        char = pattern[pos]
        if char == "\\":
            if pos + 1 >= len(pattern):
                raise ValueError(f"dangling escape in glob {pattern!r}")
            out.append(re.escape(pattern[pos + 1]))
            pos += 2
        elif char == "*":
            out.append(".*")
            pos += 1
        elif char == "?":
            out.append(".")
            pos += 1
        elif char == "[":
            end = pattern.find("]", pos + 1)
            if end < 0:
                raise ValueError(f"unclosed character class in glob {pattern!r}")
            body = pattern[pos + 1 : end]
            negate = body.startswith("!")
            if negate:
                body = body[1:]
            if not body:
                raise ValueError(f"empty character class in glob {pattern!r}")
            escaped = "".join(c if c == "-" else re.escape(c) for c in body)
            out.append("[" + ("^" if negate else "") + escaped + "]")
            pos = end + 1
        elif char == "{":
            alternatives = []
            pos += 1
            while True:
                part, pos = _translate_glob(pattern, pos, True)
                alternatives.append(part)
                if pos >= len(pattern):
                    raise ValueError(f"unclosed alternatives in glob {pattern!r}")
                pos += 1
                if pattern[pos - 1] == "}":
                    break
            out.append("(?:" + "|".join(alternatives) + ")")
        elif in_braces and char in ",}":
            return "".join(out), pos
        else:
            out.append(re.escape(char))
            pos += 1
    return "".join(out), pos


@functools.lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    regex, _ = _translate_glob(pattern, 0, False)
    return re.compile(regex, re.DOTALL)


def _quote_all(items: Iterable[str]) -> str:
    return "[" + " ".join(json.dumps(item, ensure_ascii=True) for item in items) + "]"


def _common_name(cert: x509.Certificate) -> str:
    names = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    return str(names[-1].value) if names else ""


def _organizations(cert: x509.Certificate) -> list[str]:
    return [
        str(attr.value)
        for attr in cert.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)
    ]


def _alt_names(cert: x509.Certificate, kind: type) -> list[str]:
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return [str(value) for value in san.value.get_values_for_type(kind)]


@dataclass
class CertConstraint:
    """Requirements a signing certificate must meet for a functionary."""

    common_name: str = ""
    dns_names: list[str] = field(default_factory=list)
    emails: list[str] = field(default_factory=list)
    organizations: list[str] = field(default_factory=list)
    uris: list[str] = field(default_factory=list)
    roots: list[str] = field(default_factory=list)
    extensions: Extensions = field(default_factory=Extensions)

    def check(
        self, verifier: X509Verifier, trust_bundles: Mapping[str, TrustBundle] | None
    ) -> None:
        """Raise ConstraintCheckFailedError listing every constraint the cert fails."""
        bundles = trust_bundles or {}
        cert = verifier.certificate()
        checks = [
            lambda: check_cert_constraint(
                "common name", [self.common_name], [_common_name(cert)]
            ),
            lambda: check_cert_constraint(
                "dns name", self.dns_names, _alt_names(cert, x509.DNSName)
            ),
            lambda: check_cert_constraint(
                "email", self.emails, _alt_names(cert, x509.RFC822Name)
            ),
            lambda: check_cert_constraint(
                "organization", self.organizations, _organizations(cert)
            ),
            lambda: check_cert_constraint(
                "uri", self.uris, _alt_names(cert, x509.UniformResourceIdentifier)
            ),
            lambda: self._check_trust_bundles(verifier, bundles),
            lambda: self._check_extensions(cert),
        ]
        errors: list[ValueError] = []
        for run_check in checks:
            try:
                run_check()
            except ValueError as err:
                errors.append(err)
        if errors:
            raise ConstraintCheckFailedError(errors)

    def _check_trust_bundles(
        self, verifier: X509Verifier, trust_bundles: Mapping[str, TrustBundle]
    ) -> None:
        if self.roots == [ALLOW_ALL_CONSTRAINT]:
            candidates = list(trust_bundles.values())
        else:
            candidates = [trust_bundles[r] for r in self.roots if r in trust_bundles]
        for bundle in candidates:
            try:
                verifier.belongs_to_root(bundle.root)
            except Exception:
                continue
            return
        raise ValueError(
            f"cert doesn't belong to any root specified by constraint "
            f"{_quote_all(self.roots)}"
        )

    def _check_extensions(self, cert: x509.Certificate) -> None:
        try:
            actual = _parse_extensions(cert)
        except (ValueError, UnicodeDecodeError) as err:
            raise ValueError(f"error parsing fulcio cert extensions: {err}") from err

        for ext_field in fields(Extensions):
            constraint = getattr(self.extensions, ext_field.name)
            if constraint == "":
                log.debugf(
                    "No constraint for field %s, allowing all values", ext_field.name
                )
                continue
            if not _compile_glob(constraint).fullmatch(getattr(actual, ext_field.name)):
                raise ValueError(
                    f"cert field {ext_field.name} doesn't match constraint "
                    f"{json.dumps(constraint, ensure_ascii=True)}"
                )


def check_cert_constraint(
    attribute: str, constraints: Iterable[str] | None, values: Iterable[str] | None
) -> None:
    """Raise ValueError unless ``values`` satisfy ``constraints`` exactly.

    A single ``"*"`` constraint allows anything; a single empty string on either
    side is treated as no entries.
    """
    constraints = list(constraints or [])
    values = list(values or [])
    if constraints == [ALLOW_ALL_CONSTRAINT]:
        return
    if constraints == [""]:
        constraints = []
    if values == [""]:
        values = []

    if not constraints and values:
        raise ValueError(
            f"not expecting any {attribute}(s), but cert has {len(values)} {attribute}(s)"
        )

    unmet = set(constraints)
    for value in values:
        if value not in unmet:
            raise ValueError(
                f"cert has an unexpected {attribute} {value} given constraints "
                f"{_quote_all(constraints)}"
            )
        unmet.discard(value)

    if unmet:
        raise ValueError(
            f"cert with {attribute}(s) {_quote_all(values)}Did not pass all constraints "
            f"{_quote_all(constraints)}"
        )