# mergetable/union.py
# Copyright (C) 2024-2026 the mergetable authors and contributors
# <see AUTHORS file>
#
# This module is part of mergetable and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Build ``MERGE`` union tables over partition tables.

:class:`.UnionRebuilder` maintains the persistent aggregate table named
after the dataset's base name, which unions every partition.
:class:`.AdhocUnionBuilder` creates short-lived union tables over a
caller-chosen list of partitions.

Both emit their statements as one ordered batch inside
:meth:`.Backend.begin`.  MySQL commits each DDL statement implicitly, so a
failure part way through cannot be rolled back; the batch stops at the
failing statement, scratch tables created by the batch are dropped so that
a retry starts clean, and the error is raised as
:class:`.DDLExecutionError`.

"""
from __future__ import annotations

import contextlib
import logging
import re
import sys
import warnings
from typing import Any
from typing import List
from typing import Optional
from typing import Sequence

from . import exc
from . import log
from . import naming
from .backend import Backend
from .ddl import AlterToMergeUnion
from .ddl import CreateTableLike
from .ddl import DropTable
from .ddl import RenameTables
from .directory import PartitionDirectory

REBUILD_STRATEGIES = ("swap", "drop")

_internal_module = re.compile(r"^mergetable\.(?!testing\b)")


def _emit(
    backend: Backend,
    statements: Sequence[Any],
    logger: logging.Logger,
    cleanup: Sequence[Any] = (),
) -> None:
    try:
        with backend.begin():
            for stmt in statements:
                backend.execute(stmt)
    except exc.DDLExecutionError:
        for stmt in cleanup:
            try:
                backend.execute(stmt)
            except exc.DDLExecutionError as cleanup_err:
                logger.warning(
                    "Cleanup statement %r failed: %s", stmt, cleanup_err
                )
        raise


def _warn_empty(name: str) -> None:
    # attribute the warning to the first caller outside of mergetable
    frame = sys._getframe(1)
    stacklevel = 2
    while frame is not None and _internal_module.match(
        frame.f_globals.get("__name__", "")
    ):
        frame = frame.f_back  # type: ignore[assignment]
        stacklevel += 1
    warnings.warn(
        "Union table %r has no member tables; it will return no rows"
        % name,
        exc.ConsistencyWarning,
        stacklevel=stacklevel,
    )


@log.class_logger
class UnionRebuilder:
    """Recreates the aggregate union table so that its members are exactly
    the partitions currently present.

    :param strategy: ``"swap"`` (the default) builds the replacement under a
     scratch name and renames it over the old aggregate in a single
     ``RENAME TABLE``, so readers never find the aggregate missing.
     On a first build an empty placeholder takes the aggregate's name
     just before the rename.
     ``"drop"`` drops the aggregate and recreates it in place; between the
     two statements the aggregate does not exist.

    :param serialize: when True, hold a backend advisory lock named after
     the base name for the duration of the rebuild, so that rebuilds of the
     same dataset from several processes run one at a time.  Otherwise
     concurrent rebuilds are not coordinated and the last one to finish
     wins.

    """

    def __init__(
        self,
        backend: Backend,
        directory: Optional[PartitionDirectory] = None,
        schema: Optional[str] = None,
        strategy: str = "swap",
        serialize: bool = False,
    ) -> None:
        if strategy not in REBUILD_STRATEGIES:
            raise exc.ArgumentError(
                "Unknown rebuild strategy %r; expected one of %s"
                % (strategy, ", ".join(REBUILD_STRATEGIES))
            )
        self.backend = backend
        self.schema = schema
        self.directory = directory or PartitionDirectory(backend, schema)
        self.strategy = strategy
        self.serialize = serialize

    def _lock(self, base: str) -> contextlib.AbstractContextManager[Any]:
        if self.serialize:
            return self.backend.advisory_lock("mergetable:%s" % base)
        return contextlib.nullcontext()

    def recreate_aggregate(self, base: str) -> str:
        """Drop and recreate the aggregate union table of ``base``, then
        return its name."""

        template = naming.template_name(base)
        with self._lock(base):
            members = sorted(self.directory.list_partitions(base))
            if not members:
                _warn_empty(base)

            self.logger.info(
                "Rebuilding aggregate %r over %d partition(s) (%s)",
                base,
                len(members),
                self.strategy,
            )
            if self.strategy == "swap":
                self._swap(base, template, members)
            else:
                self._drop_and_create(base, template, members)
        return base

    def _drop_and_create(
        self, base: str, template: str, members: List[str]
    ) -> None:
        schema = self.schema
        _emit(
            self.backend,
            [
                DropTable(base, schema=schema),
                CreateTableLike(base, template, schema=schema),
                AlterToMergeUnion(base, members, schema=schema),
            ],
            self.logger,
        )

    def _swap(self, base: str, template: str, members: List[str]) -> None:
        schema = self.schema
        staged = naming.staging_name(base, "new")
        displaced = naming.staging_name(base, "old")
        _emit(
            self.backend,
            [
                CreateTableLike(
                    staged, template, schema=schema, if_not_exists=False
                ),
                AlterToMergeUnion(staged, members, schema=schema),
                # a first build, possibly racing another process's first
                # build, renames an empty placeholder out of the way
                CreateTableLike(base, template, schema=schema),
                RenameTables((base, displaced), (staged, base), schema=schema),
                DropTable(displaced, schema=schema),
            ],
            self.logger,
            cleanup=[DropTable(staged, schema=schema)],
        )

    def purge_staging(self, base: str) -> List[str]:
        """Drop scratch tables left over from interrupted rebuilds of
        ``base`` and return their names."""

        stale = sorted(self.directory.list_staging(base))
        for name in stale:
            self.logger.info("Dropping stale staging table %r", name)
            self.backend.execute(DropTable(name, schema=self.schema))
        return stale


@log.class_logger
class AdhocUnionBuilder:
    """Creates a union table over an explicit list of partitions, for use
    within one database session.

    With ``temporary=True`` (the default) the table is created with
    ``CREATE TEMPORARY TABLE`` and disappears along with the session; no
    other session can see it.  The generated name is unique per call but
    is no substitute for that isolation.

    """

    def __init__(
        self,
        backend: Backend,
        schema: Optional[str] = None,
        temporary: bool = True,
    ) -> None:
        self.backend = backend
        self.schema = schema
        self.temporary = temporary

    def build_temporary_union(
        self, base: str, partition_names: Sequence[str]
    ) -> str:
        """Create a union over ``partition_names``, in the order given, and
        return its generated name.

        A name listed more than once becomes a single member, so that its
        rows are not returned twice.

        All partitions are checked before any DDL is emitted; if any are
        missing, :class:`.MissingPartitionError` is raised and nothing is
        created.

        """
        template = naming.template_name(base)
        partition_names = list(dict.fromkeys(partition_names))

        missing = [
            name
            for name in partition_names
            if not self.backend.has_table(name, schema=self.schema)
        ]
        if missing:
            raise exc.MissingPartitionError(missing)

        name = naming.temp_union_name(base)
        if not partition_names:
            _warn_empty(name)

        self.logger.info(
            "Creating %s union %r from: %s",
            "temporary" if self.temporary else "ad-hoc",
            name,
            ", ".join(partition_names),
        )
        _emit(
            self.backend,
            [
                CreateTableLike(
                    name,
                    template,
                    schema=self.schema,
                    temporary=self.temporary,
                    if_not_exists=False,
                ),
                AlterToMergeUnion(name, partition_names, schema=self.schema),
            ],
            self.logger,
            cleanup=[
                DropTable(name, schema=self.schema, temporary=self.temporary)
            ],
        )
        return name
