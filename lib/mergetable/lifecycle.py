# mergetable/lifecycle.py
# Copyright (C) 2024-2026 the mergetable authors and contributors
# <see AUTHORS file>
#
# This module is part of mergetable and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Create partitions on demand and resolve partition keys to tables.

Typical use::

    manager = LifecycleManager(report, SQLAlchemyBackend(conn))

    # make sure report_15432 exists and the aggregate includes it
    manager.ensure_exists(15432)

    # all rows, via the aggregate union table
    conn.execute(report.scope().select())

    # rows of one partition
    conn.execute(manager.scope(15432).select())

    # rows of two partitions, via a temporary union
    conn.execute(manager.scope([15432, 12344]).select())

"""
from __future__ import annotations

from typing import Any
from typing import List
from typing import Optional
from typing import Sequence
from typing import Set
from typing import Union

from sqlalchemy.engine import Connection

from . import exc
from . import log
from . import naming
from .backend import Backend
from .backend import SQLAlchemyBackend
from .dataset import MergeTableDataset
from .dataset import TableScope
from .ddl import CreateTableLike
from .directory import PartitionDirectory
from .union import AdhocUnionBuilder
from .union import UnionRebuilder

Keys = Union[naming.PartitionKey, Sequence[naming.PartitionKey], None]


def _coerce_keys(
    keys: Keys,
) -> Union[naming.PartitionKey, List[naming.PartitionKey], None]:
    """Normalize ``keys`` to None, a single key or a list of two or more
    keys.

    A one-element list is the same thing as its only element.

    """
    if isinstance(keys, (list, tuple)):
        for key in keys:
            if isinstance(key, (list, tuple, set, frozenset, dict)):
                raise exc.ArgumentError(
                    "Nested partition key collections are not supported: %r"
                    % (keys,)
                )
        if len(keys) == 1:
            keys = keys[0]
        elif not keys:
            return None
        else:
            return list(keys)

    if keys is None or keys == "":
        return None
    return keys


class LifecycleManager(log.Identified):
    """Makes sure partition tables exist and keeps the aggregate union
    current as partitions are added.

    :param dataset: the :class:`.MergeTableDataset` being managed.

    :param backend: the :class:`.Backend` DDL is emitted on.

    :param echo: if True, log partition creation and union rebuilds at INFO
     level; ``"debug"`` logs partition listings as well.  Defaults to the
     dataset's ``echo`` setting.

    """

    echo = log.echo_property()

    def __init__(
        self,
        dataset: MergeTableDataset,
        backend: Backend,
        echo: Union[bool, str, None] = None,
        logging_name: Optional[str] = None,
    ) -> None:
        self.dataset = dataset
        self.backend = backend
        self.directory = PartitionDirectory(backend, schema=dataset.schema)
        self.rebuilder = UnionRebuilder(
            backend,
            self.directory,
            schema=dataset.schema,
            strategy=dataset.rebuild_strategy,
            serialize=dataset.serialize_rebuilds,
        )
        self.adhoc = AdhocUnionBuilder(
            backend,
            schema=dataset.schema,
            temporary=dataset.temporary_unions,
        )
        if logging_name:
            self.logging_name = logging_name
        log.instance_logger(
            self, echoflag=echo if echo is not None else dataset.echo
        )

    @classmethod
    def from_connection(
        cls, dataset: MergeTableDataset, connection: Connection, **kw: Any
    ) -> LifecycleManager:
        return cls(dataset, SQLAlchemyBackend(connection), **kw)

    @property
    def base(self) -> str:
        return self.dataset.default_table_name()

    def exists(self, name: str) -> bool:
        """Return True if table ``name`` exists right now."""
        return self.backend.has_table(name, schema=self.dataset.schema)

    def partitions(self) -> Set[str]:
        return self.directory.list_partitions(self.base)

    def recreate_aggregate(self) -> str:
        return self.rebuilder.recreate_aggregate(self.base)

    def purge_staging(self) -> List[str]:
        return self.rebuilder.purge_staging(self.base)

    def create_partition(self, name: str) -> None:
        """Create partition table ``name`` as a copy of the template's
        structure, unless it already exists.

        The statement is ``CREATE TABLE IF NOT EXISTS``, so two processes
        racing to create the same partition both succeed.

        """
        base = self.base
        if not naming.is_partition_table(base, name):
            raise exc.ArgumentError(
                "%r is not a partition table name of %r" % (name, base)
            )
        self.logger.info("Creating partition table %r", name)
        self.backend.execute(
            CreateTableLike(
                name, naming.template_name(base), schema=self.dataset.schema
            )
        )

    def _partition(self, base: str, key: naming.PartitionKey) -> str:
        name = naming.partition_name(base, key)
        if not self.exists(name):
            self.create_partition(name)
        return name

    def _temporary_union(
        self, base: str, keys: List[naming.PartitionKey]
    ) -> str:
        names = [self._partition(base, key) for key in keys]
        return self.adhoc.build_temporary_union(base, names)

    def _existing_or_aggregate(self, base: str, name: str) -> str:
        if name != base and not self.exists(name):
            self.logger.warning(
                "Table %r does not exist; using aggregate table %r instead",
                name,
                base,
            )
            return base
        return name

    def resolve(self, keys: Keys = None) -> str:
        """Return the name of the table to query for ``keys``.

        A single key resolves to its partition table, which is created if
        missing; the aggregate is not rebuilt, so rows of a newly created
        partition are not visible through the aggregate until the next
        rebuild.  Several keys resolve to a temporary union over their
        partitions.  No key resolves to the aggregate.  A table that
        cannot be found afterwards also resolves to the aggregate.

        """
        base = self.base
        key = _coerce_keys(keys)
        if key is None:
            return base

        if isinstance(key, list):
            name = self._temporary_union(base, key)
        else:
            name = self._partition(base, key)
        return self._existing_or_aggregate(base, name)

    def ensure_exists(
        self, keys: Keys = None, force_recreate: bool = False
    ) -> str:
        """Make sure the partition for ``keys`` exists and the aggregate
        union includes it; return the name of the table to query.

        * a single key, or a one-element list, resolves to its partition
          table.  If the partition did not exist it is created and the
          aggregate is rebuilt.  If it did exist, the aggregate is rebuilt
          only when ``force_recreate`` is True, and otherwise no DDL is
          emitted at all.

        * two or more keys create any missing partitions and return a
          temporary union over all of them; the aggregate is left alone.

        * ``None``, ``""`` or an empty list return the aggregate's name
          without creating anything.

        If the resolved table turns out not to exist, for example because
        another process dropped it, the aggregate's name is returned so that
        the caller always gets something queryable.

        :raises ConfigurationError: the dataset has no base name.

        """
        base = self.base
        key = _coerce_keys(keys)
        if key is None:
            return base

        if isinstance(key, list):
            name = self._temporary_union(base, key)
        else:
            name = naming.partition_name(base, key)
            if not self.exists(name):
                self.create_partition(name)
                self.rebuilder.recreate_aggregate(base)
            elif force_recreate:
                self.rebuilder.recreate_aggregate(base)

        return self._existing_or_aggregate(base, name)

    def scope(
        self, keys: Keys = None, force_recreate: bool = False
    ) -> TableScope:
        """Run :meth:`.ensure_exists` and return a :class:`.TableScope` for
        the resulting table."""

        return self.dataset.scope(self.ensure_exists(keys, force_recreate))
