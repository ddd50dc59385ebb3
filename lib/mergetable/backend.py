# mergetable/backend.py
# Copyright (C) 2024-2026 the mergetable authors and contributors
# <see AUTHORS file>
#
# This module is part of mergetable and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""The storage backend which receives DDL and answers questions about
which tables exist.

:class:`.SQLAlchemyBackend` is the implementation used against a real
database; it works on a single :class:`~sqlalchemy.engine.Connection` so
that temporary union tables, which are private to the database session,
remain visible to whoever asked for them.

"""
from __future__ import annotations

import contextlib
from typing import Any
from typing import Iterator
from typing import Optional
from typing import Set

from sqlalchemy import exc as sa_exc
from sqlalchemy import inspect
from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.engine import Engine

from . import exc
from . import log


class Backend(log.Identified):
    """Interface consumed by the directory, rebuilder and lifecycle
    manager.

    None of the answers given by a backend may be cached; the tables in
    the database change underneath it as other processes create
    partitions.

    """

    echo = log.echo_property()

    def execute(self, statement: Any) -> None:
        """Emit a DDL statement.

        Failures are raised as :class:`.DDLExecutionError`.

        """
        raise NotImplementedError()

    def has_table(self, name: str, schema: Optional[str] = None) -> bool:
        raise NotImplementedError()

    def get_table_names(self, schema: Optional[str] = None) -> Set[str]:
        raise NotImplementedError()

    def begin(self) -> contextlib.AbstractContextManager[Any]:
        """Return a context manager scoping a batch of DDL.

        The scope commits when the block completes and attempts a rollback
        when it raises.  On backends where DDL commits implicitly, as with
        MySQL, the rollback undoes nothing already executed; it is a best
        effort only.

        """
        raise NotImplementedError()

    def advisory_lock(
        self, name: str, timeout: int = 10
    ) -> contextlib.AbstractContextManager[Any]:
        """Return a context manager holding a named, cross-process lock."""
        raise NotImplementedError()


class SQLAlchemyBackend(Backend):
    """A :class:`.Backend` emitting DDL on a SQLAlchemy connection."""

    def __init__(
        self,
        connection: Connection,
        echo: Any = None,
        logging_name: Optional[str] = None,
    ) -> None:
        self.connection = connection
        if logging_name:
            self.logging_name = logging_name
        log.instance_logger(self, echoflag=echo)

    @classmethod
    def from_engine(cls, engine: Engine, **kw: Any) -> SQLAlchemyBackend:
        """Check out a connection from ``engine`` and wrap it.

        The caller owns the connection and should close it with
        :meth:`.close` when finished; doing so also discards any temporary
        union tables created on it.

        """
        return cls(engine.connect(), **kw)

    def close(self) -> None:
        self.connection.close()

    @property
    def dialect(self) -> Any:
        return self.connection.dialect

    def compile(self, statement: Any) -> str:
        return str(statement.compile(dialect=self.dialect))

    def execute(self, statement: Any) -> None:
        sql = self.compile(statement)
        if self._should_log_info():
            self.logger.info(sql)
        conn = self.connection
        try:
            if conn.in_transaction():
                conn.execute(statement)
            else:
                with conn.begin():
                    conn.execute(statement)
        except sa_exc.SQLAlchemyError as err:
            raise exc.DDLExecutionError.instance(sql, err) from err

    @contextlib.contextmanager
    def _inspector(self) -> Iterator[Any]:
        conn = self.connection
        autobegun = not conn.in_transaction()
        try:
            yield inspect(conn)
        finally:
            # reflection autobegins a transaction; don't leave it holding
            # metadata locks on the tables just looked at
            if autobegun and conn.in_transaction():
                conn.rollback()

    def has_table(self, name: str, schema: Optional[str] = None) -> bool:
        with self._inspector() as insp:
            return insp.has_table(name, schema=schema)

    def get_table_names(self, schema: Optional[str] = None) -> Set[str]:
        with self._inspector() as insp:
            return set(insp.get_table_names(schema=schema))

    @contextlib.contextmanager
    def begin(self) -> Iterator[None]:
        conn = self.connection
        if conn.in_transaction():
            # already inside the caller's transaction; the caller decides
            # its outcome
            yield
            return

        trans = conn.begin()
        try:
            yield
        except BaseException:
            try:
                trans.rollback()
            except sa_exc.SQLAlchemyError as rollback_err:
                self.logger.warning(
                    "Rollback after failed DDL batch did not succeed: %s",
                    rollback_err,
                )
            raise
        else:
            trans.commit()

    @contextlib.contextmanager
    def advisory_lock(self, name: str, timeout: int = 10) -> Iterator[None]:
        if self.dialect.name not in ("mysql", "mariadb"):
            if self._should_log_debug():
                self.logger.debug(
                    "Dialect %s has no named locks; not locking %r",
                    self.dialect.name,
                    name,
                )
            yield
            return

        acquired = self._session_scalar(
            "SELECT GET_LOCK(:name, :timeout)",
            name=name,
            timeout=timeout,
        )
        if acquired != 1:
            raise exc.MergeTableError(
                "Could not acquire lock %r within %s seconds" % (name, timeout)
            )
        try:
            yield
        finally:
            self._session_scalar("SELECT RELEASE_LOCK(:name)", name=name)

    def _session_scalar(self, sql: str, **params: Any) -> Any:
        # named locks belong to the session, not the transaction
        conn = self.connection
        autobegun = not conn.in_transaction()
        try:
            return conn.scalar(text(sql), params)
        finally:
            if autobegun and conn.in_transaction():
                conn.commit()
