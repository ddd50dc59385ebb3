import logging

import pytest
from sqlalchemy.testing import assert_raises_message
from sqlalchemy.testing import eq_
from sqlalchemy.testing import is_
from sqlalchemy.testing import is_false
from sqlalchemy.testing import is_true

from mergetable import exc
from mergetable import naming
from mergetable.dataset import MergeTableDataset
from mergetable.lifecycle import LifecycleManager
from mergetable.testing import InMemoryBackend


class SilentBackend(InMemoryBackend):
    """Accepts CREATE for partition tables without creating them, as if
    another process dropped each one right away."""

    def _create_like(self, stmt):
        if naming.is_partition_table("report", stmt.name):
            return
        super()._create_like(stmt)


class RacingBackend(InMemoryBackend):
    """Reports partitions as missing, then creates them before the
    caller gets to, as a concurrent process would."""

    def has_table(self, name, schema=None):
        if naming.is_partition_table("report", name) and not self._exists(
            name, schema
        ):
            self.add_table(name, schema=schema)
            return False
        return super().has_table(name, schema=schema)


class EnsureExistsTest:
    def test_new_partition(self, manager, backend):
        eq_(manager.ensure_exists(15432), "report_15432")

        eq_(
            backend.statements[0],
            "CREATE TABLE IF NOT EXISTS `report_15432` LIKE `report_model`",
        )
        eq_(len(backend.statements), 6)
        eq_(backend.table("report").members, ("report_15432",))
        eq_(backend.table("report").engine, "MERGE")

    def test_existing_partition_no_ddl(self, manager, backend):
        manager.ensure_exists(15432)
        backend.clear()

        eq_(manager.ensure_exists(15432), "report_15432")
        eq_(backend.statements, [])
        eq_(backend.events, [])

    def test_force_recreate_existing(self, manager, backend):
        manager.ensure_exists(1)
        backend.add_table("report_2")
        backend.clear()

        eq_(manager.ensure_exists(1, force_recreate=True), "report_1")

        is_false(any("`report_1` LIKE" in s for s in backend.statements))
        eq_(backend.table("report").members, ("report_1", "report_2"))

    def test_force_recreate_new_rebuilds_once(self, manager, backend):
        manager.ensure_exists(1, force_recreate=True)
        eq_(
            len([s for s in backend.statements if s.startswith("ALTER")]),
            1,
        )

    def test_new_partition_added_to_aggregate(self, manager, backend):
        manager.ensure_exists(1)
        manager.ensure_exists(2)

        eq_(backend.table("report").members, ("report_1", "report_2"))

    def test_key_zero(self, manager, backend):
        eq_(manager.ensure_exists(0), "report_0")
        is_true(backend.has_table("report_0"))

    def test_string_key(self, manager):
        eq_(manager.ensure_exists("eu"), "report_eu")

    @pytest.mark.parametrize("keys", [[15432], (15432,)])
    def test_single_element_collection(self, manager, backend, keys):
        eq_(manager.ensure_exists(keys), "report_15432")
        eq_(backend.table("report").members, ("report_15432",))

    @pytest.mark.parametrize("keys", [None, "", [], ()])
    def test_no_key_is_aggregate(self, manager, backend, keys):
        eq_(manager.ensure_exists(keys), "report")
        eq_(backend.statements, [])
        is_false(backend.has_table("report"))

    def test_several_keys(self, manager, backend):
        name = manager.ensure_exists([15432, 12344])

        is_true(name.startswith("_tmp_report_"))
        is_true(backend.has_table("report_15432"))
        is_true(backend.has_table("report_12344"))
        info = backend.table(name)
        is_true(info.temporary)
        eq_(info.members, ("report_15432", "report_12344"))
        # partitions created for a temporary union don't touch the
        # aggregate
        is_false(backend.has_table("report"))

    def test_several_keys_existing_aggregate_untouched(self, manager, backend):
        manager.ensure_exists(1)
        backend.clear()

        manager.ensure_exists([1, 2])

        eq_(backend.table("report").members, ("report_1",))
        is_false(any(s.startswith("RENAME") for s in backend.statements))

    def test_duplicate_keys(self, manager, backend):
        name = manager.ensure_exists([1, "1", 2, 1])

        eq_(backend.table(name).members, ("report_1", "report_2"))
        eq_(
            [s for s in backend.statements if "LIKE `report_model`" in s][:2],
            [
                "CREATE TABLE IF NOT EXISTS `report_1` LIKE `report_model`",
                "CREATE TABLE IF NOT EXISTS `report_2` LIKE `report_model`",
            ],
        )

    def test_nested_keys(self, manager, backend):
        for keys in ([[1, 2]], [1, (2, 3)], ([1], 2)):
            assert_raises_message(
                exc.ArgumentError,
                "Nested partition key collections are not supported",
                manager.ensure_exists,
                keys,
            )
        eq_(backend.statements, [])

    def test_bad_key_type(self, manager, backend):
        assert_raises_message(
            exc.ArgumentError,
            "Partition key must be a string or integer",
            manager.ensure_exists,
            1.5,
        )
        eq_(backend.statements, [])

    def test_no_base_name(self, backend):
        manager = LifecycleManager(MergeTableDataset(), backend)
        for keys in (None, 1, [1, 2]):
            assert_raises_message(
                exc.ConfigurationError,
                "The default table name has to be defined",
                manager.ensure_exists,
                keys,
            )
        eq_(backend.statements, [])

    def test_create_failure_propagates(self, dataset):
        backend = InMemoryBackend(
            ["report_model"], fail_when=lambda stmt: True
        )
        manager = LifecycleManager(dataset, backend)

        assert_raises_message(
            exc.DDLExecutionError,
            "simulated failure",
            manager.ensure_exists,
            1,
        )
        eq_(len(backend.statements), 1)

    def test_concurrent_create(self, dataset):
        backend = RacingBackend(["report_model"])
        manager = LifecycleManager(dataset, backend)

        eq_(manager.ensure_exists(3), "report_3")
        eq_(backend.table("report").members, ("report_3",))


class FallbackTest:
    def test_missing_partition_falls_back(self, dataset, caplog):
        backend = SilentBackend(["report_model"])
        manager = LifecycleManager(dataset, backend)

        with pytest.warns(exc.ConsistencyWarning):
            eq_(manager.ensure_exists(5), "report")

        is_true(
            "Table 'report_5' does not exist; using aggregate table "
            "'report' instead" in caplog.text
        )

    def test_resolve_falls_back(self, dataset, caplog):
        backend = SilentBackend(["report_model"])
        manager = LifecycleManager(dataset, backend)

        with caplog.at_level(logging.WARNING, logger="mergetable"):
            eq_(manager.resolve(5), "report")

        eq_(len(caplog.records), 1)
        eq_(caplog.records[0].levelno, logging.WARNING)

    def test_empty_aggregate_warning_location(self, manager):
        with pytest.warns(exc.ConsistencyWarning) as record:
            manager.recreate_aggregate()

        eq_(record[0].filename, __file__)


class ResolveTest:
    def test_creates_without_rebuild(self, manager, backend):
        eq_(manager.resolve(7), "report_7")

        eq_(
            backend.statements,
            ["CREATE TABLE IF NOT EXISTS `report_7` LIKE `report_model`"],
        )
        is_false(backend.has_table("report"))

    def test_existing(self, manager, backend):
        backend.add_table("report_7")
        eq_(manager.resolve([7]), "report_7")
        eq_(backend.statements, [])

    def test_aggregate(self, manager):
        eq_(manager.resolve(), "report")

    def test_several_keys(self, manager, backend):
        name = manager.resolve([1, 2])
        eq_(backend.table(name).members, ("report_1", "report_2"))


class ScopeTest:
    def test_partition_scope(self, manager, dataset):
        scope = manager.scope(15432)

        eq_(scope.name, "report_15432")
        is_(scope.dataset, dataset)
        is_true(scope.is_partition)
        is_false(scope.is_aggregate)

    def test_aggregate_scope(self, manager, dataset):
        scope = manager.scope()

        is_true(scope.is_aggregate)
        eq_(scope, dataset.scope())

    def test_temporary_union_scope(self, manager):
        scope = manager.scope([1, 2])

        is_false(scope.is_partition)
        is_false(scope.is_aggregate)
        eq_(
            str(scope.select()),
            "SELECT %s.id, %s.amount \nFROM %s"
            % (scope.name, scope.name, scope.name),
        )


class ManagerTest:
    def test_create_partition_rejects_other_names(self, manager, backend):
        for name in ("report_model", "report", "reports_1", "other"):
            assert_raises_message(
                exc.ArgumentError,
                "%r is not a partition table name of 'report'" % name,
                manager.create_partition,
                name,
            )
        eq_(backend.statements, [])

    def test_create_partition_idempotent(self, manager, backend):
        manager.create_partition("report_1")
        manager.create_partition("report_1")

        eq_(len(backend.statements), 2)
        eq_(backend.get_table_names(), {"report_model", "report_1"})

    def test_partitions_and_exists(self, manager, backend):
        manager.ensure_exists(1)
        backend.add_table(naming.staging_name("report", "new"))

        eq_(manager.partitions(), {"report_1"})
        is_true(manager.exists("report_1"))
        is_false(manager.exists("report_2"))

    def test_recreate_and_purge(self, manager, backend):
        backend.add_table("report_1")
        stale = naming.staging_name("report", "old")
        backend.add_table(stale)

        eq_(manager.purge_staging(), [stale])
        eq_(manager.recreate_aggregate(), "report")
        eq_(backend.table("report").members, ("report_1",))

    def test_schema(self, backend):
        backend = InMemoryBackend()
        backend.add_table("report_model", schema="stats")
        manager = LifecycleManager(
            MergeTableDataset("report", schema="stats"), backend
        )

        eq_(manager.ensure_exists(1), "report_1")

        is_true(backend.has_table("report_1", schema="stats"))
        eq_(backend.table("report", "stats").members, ("report_1",))

    def test_info_logging(self, manager, caplog):
        with caplog.at_level(logging.INFO, logger="mergetable"):
            manager.ensure_exists(1)

        is_true("Creating partition table 'report_1'" in caplog.text)
        is_true("Rebuilding aggregate 'report'" in caplog.text)


class EchoTest:
    def _reset(self, manager):
        manager.logger.setLevel(logging.NOTSET)

    def test_echo_debug(self, dataset, backend):
        manager = LifecycleManager(
            dataset, backend, echo="debug", logging_name="echotest"
        )
        try:
            eq_(
                manager.logger.name,
                "mergetable.lifecycle.LifecycleManager.echotest",
            )
            eq_(manager.logger.level, logging.DEBUG)
            eq_(manager.echo, "debug")
        finally:
            self._reset(manager)

    def test_echo_from_dataset(self, backend):
        dataset = MergeTableDataset("report", echo=True)
        manager = LifecycleManager(
            dataset, backend, logging_name="datasetecho"
        )
        try:
            is_(manager.echo, True)
            eq_(manager.logger.level, logging.INFO)
        finally:
            self._reset(manager)

    def test_echo_setter(self, dataset, backend):
        manager = LifecycleManager(
            dataset, backend, logging_name="settertest"
        )
        try:
            is_(manager.echo, None)
            manager.echo = True
            eq_(manager.logger.level, logging.INFO)
            is_(manager.echo, True)
        finally:
            self._reset(manager)


class ReportScenarioTest:
    """Two partitions created one after another, then queried together."""

    def test_scenario(self, manager, backend):
        eq_(manager.ensure_exists(15432), "report_15432")
        eq_(backend.table("report").members, ("report_15432",))

        eq_(manager.ensure_exists(12344), "report_12344")
        eq_(
            backend.table("report").members,
            ("report_12344", "report_15432"),
        )

        backend.clear()
        name = manager.ensure_exists([15432, 12344])

        eq_(
            backend.statements,
            [
                "CREATE TEMPORARY TABLE `%s` LIKE `report_model`" % name,
                "ALTER TABLE `%s` ENGINE=MERGE "
                "UNION=(`report_15432`,`report_12344`) INSERT_METHOD=NO"
                % name,
            ],
        )
        eq_(
            backend.table("report").members,
            ("report_12344", "report_15432"),
        )
        eq_(
            manager.partitions(),
            {"report_12344", "report_15432"},
        )
