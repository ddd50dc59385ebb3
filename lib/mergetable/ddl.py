# mergetable/ddl.py
# Copyright (C) 2024-2026 the mergetable authors and contributors
# <see AUTHORS file>
#
# This module is part of mergetable and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""DDL constructs used to clone, union, rename and drop partition tables.

Each construct is an executable DDL element which is passed to
:meth:`sqlalchemy.engine.Connection.execute` like any of SQLAlchemy's own
:class:`.CreateTable` / :class:`.DropTable` constructs.  They render MySQL
syntax, which is the only family of backends with a ``MERGE`` storage
engine::

    >>> print(AlterToMergeUnion("report", ["report_1"]))
    ALTER TABLE `report` ENGINE=MERGE UNION=(`report_1`) INSERT_METHOD=NO

Table names are always quoted, since partition keys are opaque.

"""
from __future__ import annotations

from typing import Any
from typing import Optional
from typing import Sequence
from typing import Tuple

from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.compiler import DDLCompiler
from sqlalchemy.sql.ddl import ExecutableDDLElement

from . import exc

__all__ = [
    "CreateTableLike",
    "DropTable",
    "AlterToMergeUnion",
    "RenameTables",
]

INSERT_METHODS = ("NO", "FIRST", "LAST")


class _TableDDL(ExecutableDDLElement):
    """Base for DDL against one physical table, optionally schema
    qualified."""

    stringify_dialect = "mysql"

    def __init__(self, name: str, schema: Optional[str] = None) -> None:
        self.name = name
        self.schema = schema

    def __repr__(self) -> str:
        return "%s(%r)" % (self.__class__.__name__, self.name)


class CreateTableLike(_TableDDL):
    """Represent a ``CREATE [TEMPORARY] TABLE <name> LIKE <template>``
    statement."""

    def __init__(
        self,
        name: str,
        template: str,
        schema: Optional[str] = None,
        temporary: bool = False,
        if_not_exists: bool = True,
    ) -> None:
        super().__init__(name, schema)
        self.template = template
        self.temporary = temporary
        self.if_not_exists = if_not_exists


class DropTable(_TableDDL):
    """Represent a ``DROP [TEMPORARY] TABLE`` statement."""

    def __init__(
        self,
        name: str,
        schema: Optional[str] = None,
        temporary: bool = False,
        if_exists: bool = True,
    ) -> None:
        super().__init__(name, schema)
        self.temporary = temporary
        self.if_exists = if_exists


class AlterToMergeUnion(_TableDDL):
    """Represent an ``ALTER TABLE`` turning a table into a ``MERGE``
    union over ``members``.

    The member order is preserved as given.  ``insert_method`` defaults to
    ``NO``, making the union reject writes.

    """

    def __init__(
        self,
        name: str,
        members: Sequence[str],
        schema: Optional[str] = None,
        insert_method: str = "NO",
    ) -> None:
        super().__init__(name, schema)
        insert_method = insert_method.upper()
        if insert_method not in INSERT_METHODS:
            raise exc.ArgumentError(
                "insert_method must be one of %s, got %r"
                % (", ".join(INSERT_METHODS), insert_method)
            )
        self.members = tuple(members)
        self.insert_method = insert_method

    def __repr__(self) -> str:
        return "%s(%r, %r)" % (
            self.__class__.__name__,
            self.name,
            list(self.members),
        )


class RenameTables(ExecutableDDLElement):
    """Represent a single ``RENAME TABLE a TO b, c TO d`` statement.

    MySQL performs all renames of one statement atomically, which is what
    lets a rebuilt aggregate replace the old one without a gap.

    """

    stringify_dialect = "mysql"

    def __init__(
        self, *pairs: Tuple[str, str], schema: Optional[str] = None
    ) -> None:
        if not pairs:
            raise exc.ArgumentError("RenameTables requires at least one pair")
        self.pairs = pairs
        self.schema = schema

    def __repr__(self) -> str:
        return "RenameTables(%s)" % ", ".join(
            "%r -> %r" % pair for pair in self.pairs
        )


def _table(compiler: DDLCompiler, name: str, schema: Optional[str]) -> str:
    preparer = compiler.preparer
    if schema:
        return "%s.%s" % (
            preparer.quote_identifier(schema),
            preparer.quote_identifier(name),
        )
    return preparer.quote_identifier(name)


@compiles(CreateTableLike)
def _visit_create_table_like(
    element: CreateTableLike, compiler: DDLCompiler, **kw: Any
) -> str:
    return "CREATE %sTABLE %s%s LIKE %s" % (
        "TEMPORARY " if element.temporary else "",
        "IF NOT EXISTS " if element.if_not_exists else "",
        _table(compiler, element.name, element.schema),
        _table(compiler, element.template, element.schema),
    )


@compiles(DropTable)
def _visit_drop_table(
    element: DropTable, compiler: DDLCompiler, **kw: Any
) -> str:
    return "DROP %sTABLE %s%s" % (
        "TEMPORARY " if element.temporary else "",
        "IF EXISTS " if element.if_exists else "",
        _table(compiler, element.name, element.schema),
    )


@compiles(AlterToMergeUnion)
def _visit_alter_to_merge_union(
    element: AlterToMergeUnion, compiler: DDLCompiler, **kw: Any
) -> str:
    return "ALTER TABLE %s ENGINE=MERGE UNION=(%s) INSERT_METHOD=%s" % (
        _table(compiler, element.name, element.schema),
        ",".join(
            _table(compiler, member, element.schema)
            for member in element.members
        ),
        element.insert_method,
    )


@compiles(RenameTables)
def _visit_rename_tables(
    element: RenameTables, compiler: DDLCompiler, **kw: Any
) -> str:
    return "RENAME TABLE %s" % ", ".join(
        "%s TO %s"
        % (
            _table(compiler, old, element.schema),
            _table(compiler, new, element.schema),
        )
        for old, new in element.pairs
    )
