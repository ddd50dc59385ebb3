# mergetable/naming.py
# Copyright (C) 2024-2026 the mergetable authors and contributors
# <see AUTHORS file>
#
# This module is part of mergetable and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Establish the names of the physical tables making up a dataset.

Given a base name ``report``:

* ``report`` is the aggregate union table over all partitions
* ``report_model`` is the template all tables are cloned from
* ``report_<key>`` is the partition table for ``<key>``

Temporary union tables and the scratch tables used while rebuilding the
aggregate are named ``_<purpose>_<tag>_<pid>_<counter>_<token>``, where
``<tag>`` is the base name, or a digest of it when the base name is too
long for the result to fit in a MySQL identifier.  The leading underscore
keeps them out of the ``<base>_`` mask.

"""
from __future__ import annotations

import hashlib
import itertools
import os
import re
import threading
import uuid
from typing import Optional
from typing import Union

from . import exc

PartitionKey = Union[str, int]

MAX_IDENTIFIER_LENGTH = 64
"""MySQL's limit on the length of a table name, in characters."""

TEMPLATE_SUFFIX = "_model"
TEMP_UNION_PURPOSE = "tmp"
STAGING_PURPOSES = ("new", "old")

# "<pid>_<counter>_<token>", each eight hex digits
_SUFFIX_LENGTH = 26
_SUFFIX_PATTERN = r"[0-9a-f]{8}_[0-9a-f]{8}_[0-9a-f]{8}"

_counter = itertools.count(1)
_counter_lock = threading.Lock()


def _check_base(base: Optional[str]) -> str:
    if not base:
        raise exc.ConfigurationError(
            "The default table name has to be defined for a merge table "
            "dataset."
        )
    if len(base) + len(TEMPLATE_SUFFIX) > MAX_IDENTIFIER_LENGTH:
        raise exc.ConfigurationError(
            "Table name %r is too long; %r must fit in %d characters"
            % (base, base + TEMPLATE_SUFFIX, MAX_IDENTIFIER_LENGTH)
        )
    return base


def mask(base: str) -> str:
    """Return the prefix shared by all partition tables of ``base``."""
    return _check_base(base) + "_"


def template_name(base: str) -> str:
    return _check_base(base) + TEMPLATE_SUFFIX


def partition_name(base: str, key: PartitionKey) -> str:
    """Return the partition table name for the given key.

    Keys are opaque; a ``str`` or ``int`` is accepted and rendered with
    ``str()``.  ``bool`` is refused as it is almost certainly a mistake.

    """
    if isinstance(key, bool) or not isinstance(key, (str, int)):
        raise exc.ArgumentError(
            "Partition key must be a string or integer, got %r" % (key,)
        )
    if key == "":
        raise exc.ArgumentError("Partition key may not be an empty string")
    name = mask(base) + str(key)
    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise exc.ArgumentError(
            "Partition table name %r exceeds %d characters"
            % (name, MAX_IDENTIFIER_LENGTH)
        )
    return name


def is_partition_table(base: str, name: str) -> bool:
    """Return True if ``name`` is one of the tables that go into the
    aggregate union for ``base``."""

    return (
        name.startswith(mask(base))
        and name != base
        and name != template_name(base)
    )


def _tag(base: str, purpose: str) -> str:
    base = _check_base(base)
    # "_<purpose>_<base>_<suffix>"
    if len(purpose) + len(base) + _SUFFIX_LENGTH + 3 <= MAX_IDENTIFIER_LENGTH:
        return base
    return "h" + hashlib.sha1(base.encode("utf-8")).hexdigest()[:12]


def _unique_suffix() -> str:
    with _counter_lock:
        seq = next(_counter)
    return "%08x_%08x_%s" % (
        os.getpid() & 0xFFFFFFFF,
        seq & 0xFFFFFFFF,
        uuid.uuid4().hex[:8],
    )


def temp_union_name(base: str) -> str:
    """Return a fresh name for a temporary union table.

    The process id is there for diagnostics; uniqueness comes from the
    counter and the random token.

    """
    return "_%s_%s_%s" % (
        TEMP_UNION_PURPOSE,
        _tag(base, TEMP_UNION_PURPOSE),
        _unique_suffix(),
    )


def staging_name(base: str, purpose: str) -> str:
    """Return a fresh scratch table name used while swapping in a rebuilt
    aggregate."""

    if purpose not in STAGING_PURPOSES:
        raise exc.ArgumentError(
            "Unknown staging purpose %r; expected one of %s"
            % (purpose, ", ".join(STAGING_PURPOSES))
        )
    return "_%s_%s_%s" % (purpose, _tag(base, purpose), _unique_suffix())


def is_staging_table(base: str, name: str) -> bool:
    """Return True if ``name`` was produced by :func:`.staging_name` for
    ``base``."""

    pattern = r"^_(?:%s)$" % "|".join(
        "%s_%s_%s" % (purpose, re.escape(_tag(base, purpose)), _SUFFIX_PATTERN)
        for purpose in STAGING_PURPOSES
    )
    return re.match(pattern, name) is not None
