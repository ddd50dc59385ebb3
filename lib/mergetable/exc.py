# mergetable/exc.py
# Copyright (C) 2024-2026 the mergetable authors and contributors
# <see AUTHORS file>
#
# This module is part of mergetable and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Exceptions used with mergetable.

The base exception class is :exc:`.MergeTableError`, itself a
:exc:`sqlalchemy.exc.SQLAlchemyError`, so that an application which already
traps SQLAlchemy errors traps these as well.  Errors raised by the database
while DDL is being emitted are wrapped in :exc:`.DDLExecutionError`.

"""
from __future__ import annotations

from typing import Any
from typing import Iterable
from typing import Optional

from sqlalchemy import exc as sa_exc


class MergeTableError(sa_exc.SQLAlchemyError):
    """Generic error class."""


class ArgumentError(MergeTableError, sa_exc.ArgumentError):
    """Raised when an invalid partition key or configuration value is
    supplied.

    """


class ConfigurationError(ArgumentError):
    """Raised when the dataset does not define its base table name, which
    makes the template, partition and aggregate names impossible to derive.

    """


class MissingPartitionError(MergeTableError, sa_exc.InvalidRequestError):
    """Raised when an ad-hoc union refers to partition tables which do
    not exist.

    No DDL has been emitted when this error is raised.  The offending table
    names are available in the :attr:`.names` attribute.

    """

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(names)
        super().__init__(
            "Can't build a union over non-existent partition table(s): %s"
            % ", ".join(self.names)
        )

    def __reduce__(self) -> Any:
        return self.__class__, (self.names,)


class DDLExecutionError(MergeTableError):
    """A DDL statement was rejected by, or failed within, the backend.

    The statement text is available in :attr:`.statement` and the wrapped
    exception in :attr:`.orig`.

    """

    statement: Optional[str] = None
    """The DDL string being invoked when this exception occurred."""

    orig: Optional[BaseException] = None
    """The exception raised by the backend."""

    def __init__(
        self,
        message: str,
        statement: Optional[str],
        orig: Optional[BaseException],
    ) -> None:
        super().__init__(message)
        self.statement = statement
        self.orig = orig

    @classmethod
    def instance(
        cls, statement: Optional[str], orig: BaseException
    ) -> DDLExecutionError:
        if isinstance(orig, cls):
            return orig
        return cls(
            "(%s.%s) %s"
            % (type(orig).__module__, type(orig).__name__, orig),
            statement,
            orig,
        )

    def __reduce__(self) -> Any:
        return self.__class__, (self.args[0], self.statement, self.orig)

    def __str__(self) -> str:
        message = str(self.args[0]) if self.args else ""
        if self.statement:
            return "%s\n[SQL: %s]" % (message, self.statement)
        return message


class ConsistencyWarning(sa_exc.SAWarning):
    """Issued when a union table is built over zero partitions.

    This is not an error; the resulting union table simply returns no rows.

    """
