# mergetable/log.py
# Copyright (C) 2024-2026 the mergetable authors and contributors
# <see AUTHORS file>
#
# This module is part of mergetable and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Logging control and utilities.

Control of logging for mergetable can be performed from the regular python
logging module.  The regular dotted module namespace is used, starting at
'mergetable'.  For class-level logging, the class name is appended.

The "echo" keyword parameter which is available on
:class:`.LifecycleManager` corresponds to a logger specific to that
instance only.

E.g.::

    manager.echo = True

is equivalent to::

    import logging
    logger = logging.getLogger(
        "mergetable.lifecycle.LifecycleManager.%s" % manager.logging_name
    )
    logger.setLevel(logging.INFO)

"""
from __future__ import annotations

import logging
import sys
from typing import Any
from typing import Type
from typing import TypeVar
from typing import Union

from sqlalchemy import util

_T = TypeVar("_T", bound=Type[Any])

rootlogger = logging.getLogger("mergetable")
if rootlogger.level == logging.NOTSET:
    rootlogger.setLevel(logging.WARN)


def _add_default_handler(logger: logging.Logger) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
    logger.addHandler(handler)


def _has_handler(logger: logging.Logger) -> bool:
    while logger:
        if logger.handlers:
            return True
        logger = logger.parent  # type: ignore[assignment]
    return False


def class_logger(cls: _T) -> _T:
    """Decorate a class with a ``logger`` named after its module and
    class name."""

    logger = logging.getLogger(cls.__module__ + "." + cls.__name__)
    cls._should_log_debug = lambda self: logger.isEnabledFor(logging.DEBUG)
    cls._should_log_info = lambda self: logger.isEnabledFor(logging.INFO)
    cls.logger = logger
    return cls


class Identified:
    logging_name: Union[str, None] = None

    _echo: Union[bool, str, None] = None

    def _should_log_debug(self) -> bool:
        return self.logger.isEnabledFor(logging.DEBUG)

    def _should_log_info(self) -> bool:
        return self.logger.isEnabledFor(logging.INFO)

    @util.memoized_property
    def logger(self) -> logging.Logger:
        return logging.getLogger(
            "%s.%s" % (self.__class__.__module__, self.__class__.__name__)
        )


def instance_logger(
    instance: Identified, echoflag: Union[bool, str, None] = None
) -> None:
    """Create a logger for an instance that implements :class:`.Identified`.

    A ``logging_name`` on the instance is appended to the class logger
    name so that one manager may be echoed without echoing all others.

    """

    if instance.logging_name:
        name = "%s.%s.%s" % (
            instance.__class__.__module__,
            instance.__class__.__name__,
            instance.logging_name,
        )
    else:
        name = "%s.%s" % (
            instance.__class__.__module__,
            instance.__class__.__name__,
        )

    logger = logging.getLogger(name)
    instance._echo = echoflag

    if echoflag in (False, None):
        # no echo; keep whatever level the application configured
        pass
    else:
        if echoflag == "debug":
            logger.setLevel(logging.DEBUG)
        else:
            logger.setLevel(logging.INFO)
        if not _has_handler(logger):
            _add_default_handler(logger)

    instance.logger = logger


class echo_property:
    __doc__ = """\
    When ``True``, enable log output for this element.

    This has the effect of setting the Python logging level for the namespace
    of this element's class and object reference.  A value of boolean ``True``
    indicates that the loglevel ``logging.INFO`` will be set for the logger,
    whereas the string value ``debug`` will set the loglevel to
    ``logging.DEBUG``.
    """

    def __get__(self, instance: Any, owner: Any) -> Any:
        if instance is None:
            return self
        else:
            return instance._echo

    def __set__(self, instance: Identified, value: Union[bool, str]) -> None:
        instance_logger(instance, echoflag=value)
