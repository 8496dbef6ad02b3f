"""Attestation policy verification, in-toto statements, certificate constraints and entity registries."""

__version__ = "0.1.0"

__all__ = [
    "constraints",
    "errors",
    "log",
    "option",
    "policy",
    "registry",
    "statement",
    "step",
]