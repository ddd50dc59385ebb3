# mergetable/directory.py
# Copyright (C) 2024-2026 the mergetable authors and contributors
# <see AUTHORS file>
#
# This module is part of mergetable and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Look up which partition tables of a dataset currently exist."""
from __future__ import annotations

from typing import Optional
from typing import Set

from . import log
from . import naming
from .backend import Backend


@log.class_logger
class PartitionDirectory:
    """Lists the partition tables present in the backend for a base name.

    Nothing is cached: every call asks the backend, so tables created by
    other processes since the previous call are picked up.

    """

    def __init__(self, backend: Backend, schema: Optional[str] = None):
        self.backend = backend
        self.schema = schema

    def list_partitions(self, base: str) -> Set[str]:
        """Return the names of all partition tables of ``base``.

        The template table and the aggregate union table are never
        included.

        """
        names = {
            name
            for name in self.backend.get_table_names(schema=self.schema)
            if naming.is_partition_table(base, name)
        }
        if self._should_log_debug():
            self.logger.debug(
                "Found %d partition(s) for %r: %s",
                len(names),
                base,
                ", ".join(sorted(names)),
            )
        return names

    def list_staging(self, base: str) -> Set[str]:
        """Return scratch tables left behind by an interrupted rebuild."""
        return {
            name
            for name in self.backend.get_table_names(schema=self.schema)
            if naming.is_staging_table(base, name)
        }
