[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "witness"
version = "0.1.0"
description = "Supply-chain attestation policy verification: in-toto statements, step policies, certificate constraints and a configurable entity registry."
requires-python = ">=3.10"
keywords = ["in-toto", "attestation", "supply-chain", "policy", "verification", "x509"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
    "cryptography",
]

[tool.hatch.build.targets.wheel]
packages = ["witness"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
