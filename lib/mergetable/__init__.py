# mergetable/__init__.py
# Copyright (C) 2024-2026 the mergetable authors and contributors
# <see AUTHORS file>
#
# This module is part of mergetable and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Manage a dataset sharded over many identically shaped tables, unioned
together with MySQL's ``MERGE`` storage engine."""

from .backend import Backend as Backend
from .backend import SQLAlchemyBackend as SQLAlchemyBackend
from .dataset import dataset_from_config as dataset_from_config
from .dataset import MergeTableDataset as MergeTableDataset
from .dataset import TableScope as TableScope
from .ddl import AlterToMergeUnion as AlterToMergeUnion
from .ddl import CreateTableLike as CreateTableLike
from .ddl import DropTable as DropTable
from .ddl import RenameTables as RenameTables
from .directory import PartitionDirectory as PartitionDirectory
from .exc import ArgumentError as ArgumentError
from .exc import ConfigurationError as ConfigurationError
from .exc import ConsistencyWarning as ConsistencyWarning
from .exc import DDLExecutionError as DDLExecutionError
from .exc import MergeTableError as MergeTableError
from .exc import MissingPartitionError as MissingPartitionError
from .lifecycle import LifecycleManager as LifecycleManager
from .naming import is_partition_table as is_partition_table
from .naming import mask as mask
from .naming import partition_name as partition_name
from .naming import template_name as template_name
from .naming import temp_union_name as temp_union_name
from .union import AdhocUnionBuilder as AdhocUnionBuilder
from .union import UnionRebuilder as UnionRebuilder

__version__ = "1.0.0"
