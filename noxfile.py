"""Nox configuration for mergetable."""

from __future__ import annotations

from typing import List

import nox

PYTHON_VERSIONS = ["3.9", "3.10", "3.11", "3.12", "3.13"]
SQLALCHEMY_VERSIONS = ["2.0", "latest"]

nox.options.sessions = ["tests"]


def _sqlalchemy_requirement(version: str) -> str:
    if version == "latest":
        return "sqlalchemy"
    return f"sqlalchemy~={version}.0"


@nox.session(python=PYTHON_VERSIONS)
@nox.parametrize("sqlalchemy", SQLALCHEMY_VERSIONS)
def tests(session: nox.Session, sqlalchemy: str) -> None:
    """run the test suite"""

    # PYTHONNOUSERSITE - this *MUST* be set so that the ./lib/ import
    # set up explicitly in test/conftest.py is *disabled*, so that
    # the package installed into the .nox area is the one tested
    session.env["PYTHONNOUSERSITE"] = "1"

    session.install(".[test]", _sqlalchemy_requirement(sqlalchemy))

    cmd: List[str] = ["python", "-m", "pytest"]
    cmd.extend(session.posargs)
    session.run(*cmd)


@nox.session(name="coverage")
def coverage(session: nox.Session) -> None:
    """Run tests with coverage."""

    session.env["PYTHONNOUSERSITE"] = "1"
    session.install("-e", ".[test]", "pytest-cov")
    session.run(
        "python",
        "-m",
        "pytest",
        "--cov=mergetable",
        "--cov-report",
        "term",
        "--cov-report",
        "xml",
        *session.posargs,
    )


@nox.session(name="pep8")
def test_pep8(session: nox.Session) -> None:
    """Run linting and formatting checks."""

    session.install("-e", ".")
    session.install("flake8", "flake8-import-order", "black")

    for cmd in [
        "flake8 ./lib/ ./test/ ./examples/ noxfile.py setup.py",
        "black --line-length 79 --check ./lib/ ./test/ ./examples/ "
        "noxfile.py setup.py",
    ]:
        session.run(*cmd.split())
