# mergetable/testing.py
# Copyright (C) 2024-2026 the mergetable authors and contributors
# <see AUTHORS file>
#
# This module is part of mergetable and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""An in-memory :class:`.Backend` for tests and dry runs.

:class:`.InMemoryBackend` keeps a catalog of tables and applies the
constructs from :mod:`mergetable.ddl` to it the way MySQL would, including
the parts that make DDL batches non-atomic: a rollback does not undo
statements already executed.  Every statement is also compiled against the
MySQL dialect and recorded in :attr:`.InMemoryBackend.statements`.

"""
from __future__ import annotations

import contextlib
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import Iterator
from typing import List
from typing import Optional
from typing import Set
from typing import Tuple

from sqlalchemy.dialects import mysql

from . import exc
from .backend import Backend
from .ddl import AlterToMergeUnion
from .ddl import CreateTableLike
from .ddl import DropTable
from .ddl import RenameTables


class TableInfo:
    """What the in-memory catalog knows about one table."""

    def __init__(
        self,
        name: str,
        like: Optional[str] = None,
        temporary: bool = False,
    ) -> None:
        self.name = name
        self.like = like
        self.temporary = temporary
        self.engine = "MyISAM"
        self.members: Tuple[str, ...] = ()
        self.insert_method: Optional[str] = None

    def __repr__(self) -> str:
        return "TableInfo(%r, engine=%r, members=%r)" % (
            self.name,
            self.engine,
            self.members,
        )


class SimulatedError(Exception):
    """Stands in for a driver error raised by the database."""


class InMemoryBackend(Backend):
    """A :class:`.Backend` holding its tables in a dictionary.

    :param tables: names of tables which exist up front, typically the
     template table.

    :param fail_when: optional callable receiving each statement before it
     is applied; returning True makes the statement fail with
     :class:`.DDLExecutionError`.

    """

    def __init__(
        self,
        tables: Iterable[str] = (),
        fail_when: Optional[Callable[[Any], bool]] = None,
    ) -> None:
        self.dialect = mysql.dialect()
        self.tables: Dict[Tuple[Optional[str], str], TableInfo] = {}
        self.temporary_tables: Dict[
            Tuple[Optional[str], str], TableInfo
        ] = {}
        self.statements: List[str] = []
        self.events: List[str] = []
        self.fail_when = fail_when
        self.lock_timeouts: Set[str] = set()
        for name in tables:
            self.add_table(name)

    def add_table(self, name: str, schema: Optional[str] = None) -> TableInfo:
        info = self.tables[(schema, name)] = TableInfo(name)
        return info

    def drop_table(self, name: str, schema: Optional[str] = None) -> None:
        del self.tables[(schema, name)]

    def table(self, name: str, schema: Optional[str] = None) -> TableInfo:
        """Return the catalog entry for ``name``; temporary tables shadow
        permanent ones, as they do in MySQL."""

        key = (schema, name)
        if key in self.temporary_tables:
            return self.temporary_tables[key]
        return self.tables[key]

    def clear(self) -> None:
        """Forget recorded statements and events."""
        del self.statements[:]
        del self.events[:]

    def compile(self, statement: Any) -> str:
        return str(statement.compile(dialect=self.dialect))

    def execute(self, statement: Any) -> None:
        sql = self.compile(statement)
        self.statements.append(sql)
        if self._should_log_info():
            self.logger.info(sql)
        try:
            if self.fail_when is not None and self.fail_when(statement):
                raise SimulatedError("simulated failure")
            self._apply(statement)
        except SimulatedError as err:
            raise exc.DDLExecutionError.instance(sql, err) from err

    def _apply(self, statement: Any) -> None:
        if isinstance(statement, CreateTableLike):
            self._create_like(statement)
        elif isinstance(statement, DropTable):
            self._drop(statement)
        elif isinstance(statement, AlterToMergeUnion):
            self._alter_to_merge(statement)
        elif isinstance(statement, RenameTables):
            self._rename(statement)
        else:
            raise SimulatedError("Unsupported statement %r" % (statement,))

    def _exists(self, name: str, schema: Optional[str]) -> bool:
        key = (schema, name)
        return key in self.tables or key in self.temporary_tables

    def _create_like(self, stmt: CreateTableLike) -> None:
        schema = stmt.schema
        if not self._exists(stmt.template, schema):
            raise SimulatedError("Table '%s' doesn't exist" % stmt.template)
        catalog = self.temporary_tables if stmt.temporary else self.tables
        if (schema, stmt.name) in catalog:
            if stmt.if_not_exists:
                return
            raise SimulatedError("Table '%s' already exists" % stmt.name)
        catalog[(schema, stmt.name)] = TableInfo(
            stmt.name, like=stmt.template, temporary=stmt.temporary
        )

    def _drop(self, stmt: DropTable) -> None:
        key = (stmt.schema, stmt.name)
        if stmt.temporary:
            catalogs = [self.temporary_tables]
        else:
            catalogs = [self.temporary_tables, self.tables]
        for catalog in catalogs:
            if key in catalog:
                del catalog[key]
                return
        if not stmt.if_exists:
            raise SimulatedError("Unknown table '%s'" % stmt.name)

    def _alter_to_merge(self, stmt: AlterToMergeUnion) -> None:
        if not self._exists(stmt.name, stmt.schema):
            raise SimulatedError("Table '%s' doesn't exist" % stmt.name)
        for member in stmt.members:
            if not self._exists(member, stmt.schema):
                raise SimulatedError("Table '%s' doesn't exist" % member)
        info = self.table(stmt.name, stmt.schema)
        info.engine = "MERGE"
        info.members = stmt.members
        info.insert_method = stmt.insert_method

    def _rename(self, stmt: RenameTables) -> None:
        # all pairs or none, applied left to right
        names = {name for (s, name) in self.tables if s == stmt.schema}
        for old, new in stmt.pairs:
            if old not in names:
                raise SimulatedError("Table '%s' doesn't exist" % old)
            if new in names:
                raise SimulatedError("Table '%s' already exists" % new)
            names.remove(old)
            names.add(new)
        for old, new in stmt.pairs:
            info = self.tables.pop((stmt.schema, old))
            info.name = new
            self.tables[(stmt.schema, new)] = info

    def has_table(self, name: str, schema: Optional[str] = None) -> bool:
        return self._exists(name, schema)

    def get_table_names(self, schema: Optional[str] = None) -> Set[str]:
        # like SHOW TABLES, temporary tables are not listed
        return {name for (s, name) in self.tables if s == schema}

    @contextlib.contextmanager
    def begin(self) -> Iterator[None]:
        self.events.append("begin")
        try:
            yield
        except BaseException:
            self.events.append("rollback")
            raise
        else:
            self.events.append("commit")

    @contextlib.contextmanager
    def advisory_lock(self, name: str, timeout: int = 10) -> Iterator[None]:
        if name in self.lock_timeouts:
            raise exc.MergeTableError(
                "Could not acquire lock %r within %s seconds" % (name, timeout)
            )
        self.events.append("lock %s" % name)
        try:
            yield
        finally:
            self.events.append("unlock %s" % name)
