# mergetable/dataset.py
# Copyright (C) 2024-2026 the mergetable authors and contributors
# <see AUTHORS file>
#
# This module is part of mergetable and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Define a partitioned dataset and select which of its tables a query
runs against.

A dataset is identified by its base name, either passed in or declared on
a subclass::

    class Report(MergeTableDataset):
        __basename__ = "report"

    report = Report(columns=report_model.c)

Queries are built against an explicit :class:`.TableScope` rather than a
table name stored on the dataset, so that two requests served by the same
process can target different partitions at the same time::

    scope = manager.scope(15432)
    rows = conn.execute(scope.select().where(scope.c.amount > 10))

"""
from __future__ import annotations

from typing import Any
from typing import Iterable
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Union

from sqlalchemy import column
from sqlalchemy import select
from sqlalchemy import table
from sqlalchemy import util
from sqlalchemy.sql.expression import ColumnClause
from sqlalchemy.sql.expression import Select
from sqlalchemy.sql.expression import TableClause

from . import exc
from . import naming
from .union import REBUILD_STRATEGIES

_ColumnSpec = Union[str, ColumnClause[Any], Any]


class MergeTableDataset:
    """A logical dataset sharded over identically shaped tables.

    :param base_name: name of the aggregate union table; the template is
     ``<base_name>_model`` and partitions are ``<base_name>_<key>``.  May be
     omitted when a subclass declares ``__basename__``.

    :param columns: column names, or :class:`.Column` objects such as
     ``some_table.c``, describing the template's columns.  Only used to
     build the table constructs returned by :class:`.TableScope`.

    :param schema: schema holding all tables of the dataset; ``None`` for
     the connection's default schema.

    :param rebuild_strategy: ``"swap"`` or ``"drop"``; see
     :class:`.UnionRebuilder`.

    :param temporary_unions: create ad-hoc unions as temporary tables.

    :param serialize_rebuilds: hold an advisory lock while rebuilding the
     aggregate.

    :param echo: default ``echo`` flag for lifecycle managers of this
     dataset.

    """

    __basename__: Optional[str] = None

    def __init__(
        self,
        base_name: Optional[str] = None,
        *,
        columns: Iterable[_ColumnSpec] = (),
        schema: Optional[str] = None,
        rebuild_strategy: str = "swap",
        temporary_unions: bool = True,
        serialize_rebuilds: bool = False,
        echo: Union[bool, str, None] = None,
    ) -> None:
        if rebuild_strategy not in REBUILD_STRATEGIES:
            raise exc.ArgumentError(
                "Unknown rebuild strategy %r; expected one of %s"
                % (rebuild_strategy, ", ".join(REBUILD_STRATEGIES))
            )
        self.base_name = (
            base_name if base_name is not None else self.__basename__
        )
        self.columns = tuple(_as_column(col) for col in columns)
        self.schema = schema
        self.rebuild_strategy = rebuild_strategy
        self.temporary_unions = temporary_unions
        self.serialize_rebuilds = serialize_rebuilds
        self.echo = echo

    def __repr__(self) -> str:
        return "%s(%r)" % (self.__class__.__name__, self.base_name)

    def default_table_name(self) -> str:
        """Return the base name, which is also the aggregate table name."""
        if not self.base_name:
            raise exc.ConfigurationError(
                "The default table name has to be defined; pass base_name "
                "or declare __basename__ on %s" % self.__class__.__name__
            )
        return self.base_name

    def template_name(self) -> str:
        return naming.template_name(self.default_table_name())

    def partition_name(self, key: naming.PartitionKey) -> str:
        return naming.partition_name(self.default_table_name(), key)

    def scope(self, name: Optional[str] = None) -> TableScope:
        """Return a :class:`.TableScope` for the physical table ``name``,
        defaulting to the aggregate."""

        return TableScope(self, name or self.default_table_name())


def _as_column(spec: _ColumnSpec) -> ColumnClause[Any]:
    if isinstance(spec, str):
        return column(spec)
    return column(spec.name, spec.type)


class TableScope:
    """The physical table that queries against a dataset should target.

    Scopes are immutable; to switch tables, obtain a new scope from
    :meth:`.MergeTableDataset.scope` or :meth:`.LifecycleManager.scope`.

    """

    __slots__ = ("dataset", "name", "_table")

    dataset: MergeTableDataset
    name: str

    def __init__(self, dataset: MergeTableDataset, name: str) -> None:
        object.__setattr__(self, "dataset", dataset)
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "_table", None)

    def __setattr__(self, key: str, value: Any) -> None:
        raise AttributeError("TableScope is immutable")

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, TableScope)
            and other.dataset is self.dataset
            and other.name == self.name
        )

    def __hash__(self) -> int:
        return hash((id(self.dataset), self.name))

    def __repr__(self) -> str:
        return "TableScope(%r, %r)" % (self.dataset.base_name, self.name)

    @property
    def is_aggregate(self) -> bool:
        return self.name == self.dataset.default_table_name()

    @property
    def is_partition(self) -> bool:
        return naming.is_partition_table(
            self.dataset.default_table_name(), self.name
        )

    @property
    def table(self) -> TableClause:
        """A :func:`~sqlalchemy.sql.expression.table` construct for the
        scoped table carrying the dataset's columns."""

        if self._table is None:
            object.__setattr__(
                self,
                "_table",
                table(
                    self.name,
                    *[column(c.name, c.type) for c in self.dataset.columns],
                    schema=self.dataset.schema,
                ),
            )
        return self._table  # type: ignore[return-value]

    @property
    def c(self) -> Any:
        return self.table.c

    def select(self, *entities: Any) -> Select[Any]:
        """Return a SELECT against the scoped table; all of its columns
        when no entities are given."""

        if entities:
            return select(*entities).select_from(self.table)
        return select(self.table)


_config_coercions: Tuple[Tuple[str, Any], ...] = (
    ("temporary_unions", bool),
    ("serialize_rebuilds", bool),
    ("echo", util.bool_or_str("debug")),
)

_config_keys = frozenset(
    [
        "base_name",
        "schema",
        "rebuild_strategy",
        "temporary_unions",
        "serialize_rebuilds",
        "echo",
    ]
)


def dataset_from_config(
    configuration: Mapping[str, Any],
    prefix: str = "mergetable.",
    **kwargs: Any,
) -> MergeTableDataset:
    """Create a new :class:`.MergeTableDataset` using a configuration
    dictionary.

    The dictionary is typically produced from a config file.

    The keys of interest to ``dataset_from_config()`` should be prefixed,
    e.g. ``mergetable.base_name``, ``mergetable.rebuild_strategy``.  The
    'prefix' argument indicates the prefix to be searched for.  String
    values such as ``"false"`` are coerced for the boolean options.

    Keyword arguments, such as ``columns``, are passed through to
    :class:`.MergeTableDataset` and take precedence over the configuration.

    """

    options = {
        key[len(prefix) :]: configuration[key]
        for key in configuration
        if key.startswith(prefix)
    }
    unknown = set(options).difference(_config_keys)
    if unknown:
        raise exc.ArgumentError(
            "Unknown configuration option(s): %s"
            % ", ".join(prefix + key for key in sorted(unknown))
        )

    for key, type_ in _config_coercions:
        if key in options and isinstance(options[key], str):
            try:
                options[key] = (
                    util.asbool(options[key])
                    if type_ is bool
                    else type_(options[key])
                )
            except ValueError as err:
                raise exc.ArgumentError(
                    "Invalid value for %s%s: %s" % (prefix, key, err)
                ) from err

    options.update(kwargs)
    base_name = options.pop("base_name", None)
    return MergeTableDataset(base_name, **options)
