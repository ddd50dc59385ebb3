#!/usr/bin/env python
"""
pytest plugin script.

This script puts the local ./lib/ on sys.path ahead of any installed
mergetable, and provides the fixtures shared by the test suite.

"""
import os
import sys

import pytest


if not sys.flags.no_user_site:
    # this is needed so that plain "pytest" works against the local
    # checkout.  since we have ./lib/, we need to punch that in.
    # We check no_user_site to honor the use of this flag.
    sys.path.insert(
        0,
        os.path.abspath(
            os.path.join(
                os.path.dirname(os.path.abspath(__file__)), "..", "lib"
            )
        ),
    )

from mergetable import LifecycleManager  # noqa: E402
from mergetable import MergeTableDataset  # noqa: E402
from mergetable.testing import InMemoryBackend  # noqa: E402


@pytest.fixture
def backend():
    return InMemoryBackend(tables=["report_model"])


@pytest.fixture
def dataset():
    return MergeTableDataset("report", columns=["id", "amount"])


@pytest.fixture
def manager(dataset, backend):
    return LifecycleManager(dataset, backend)
