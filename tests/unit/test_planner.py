"""Tests for UpgradePlanner mode classification."""

import logging

import pytest

from autoupgrade.exceptions import DefinitionError
from autoupgrade.schema.catalog import ForeignKeyInfo
from autoupgrade.schema.models import Field, TableBuilder, TableDefinition
from autoupgrade.types import UpgradeMode
from autoupgrade.upgrade.planner import UpgradeInfo, UpgradeOptions, UpgradePlanner
from tests.helpers import make_table_info, make_users_table


def live_users(**kwargs):
    """Catalog view matching make_users_table() exactly."""
    params = dict(
        columns={"id": "INTEGER", "name": "TEXT", "email": "TEXT"},
        primary_key=["id"],
        indexes={"idx_users_email": ["email"]},
        not_null={"name"},
    )
    params.update(kwargs)
    return make_table_info("users", **params)


def plan(table, info, opts=None, defaults=None) -> UpgradeMode:
    return UpgradePlanner(defaults).plan(table, info, opts).upgrade_mode


class TestUpgradeOptions:
    def test_merge_overrides_only_set_fields(self):
        defaults = UpgradeOptions(keep_old_columns=True, force_recreate=False)
        merged = defaults.merged(UpgradeOptions(force_recreate=True))
        assert merged == UpgradeOptions(keep_old_columns=True, force_recreate=True)

    def test_merge_with_none(self):
        defaults = UpgradeOptions(keep_old_columns=True)
        assert defaults.merged(None) is defaults

    def test_upgrade_info_keep_old_columns(self):
        info = UpgradeInfo(table_info=None, upgrade_mode=UpgradeMode.CREATE)
        assert info.keep_old_columns is False


class TestPlanBasics:
    """First rules: existence and forced recreate."""

    def test_missing_table_is_create(self):
        info = UpgradePlanner().plan(make_users_table(), None)
        assert info.upgrade_mode == UpgradeMode.CREATE
        assert info.table_info is None

    def test_identical_table_is_actual(self):
        assert plan(make_users_table(), live_users()) == UpgradeMode.ACTUAL

    def test_force_recreate(self):
        opts = UpgradeOptions(force_recreate=True)
        assert plan(make_users_table(), live_users(), opts) == UpgradeMode.RECREATE

    def test_force_recreate_from_defaults(self):
        defaults = UpgradeOptions(force_recreate=True)
        assert plan(make_users_table(), live_users(), defaults=defaults) == UpgradeMode.RECREATE

    def test_call_options_override_defaults(self):
        defaults = UpgradeOptions(force_recreate=True)
        opts = UpgradeOptions(force_recreate=False)
        assert plan(make_users_table(), live_users(), opts, defaults) == UpgradeMode.ACTUAL

    def test_force_recreate_does_not_apply_to_missing_table(self):
        opts = UpgradeOptions(force_recreate=True)
        assert plan(make_users_table(), None, opts) == UpgradeMode.CREATE

    def test_invalid_definition_raises(self):
        table = TableDefinition(name="users", fields=(Field("a", "TEXT"), Field("a", "TEXT")))
        with pytest.raises(DefinitionError):
            UpgradePlanner().plan(table, None)

    def test_merged_options_are_returned(self):
        planner = UpgradePlanner(UpgradeOptions(keep_old_columns=True))
        info = planner.plan(make_users_table(), live_users())
        assert info.keep_old_columns is True

    def test_reason_is_logged(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="autoupgrade.upgrade.planner"):
            UpgradePlanner().plan(make_users_table(), None)
        assert "table 'users': create (does not exist)" in caplog.text


class TestPlanRecreate:
    """Changes SQLite cannot apply in place."""

    def test_foreign_key_added(self):
        table = (
            TableBuilder("users")
            .field("id", "INTEGER", identity=True)
            .field("name", "TEXT NOT NULL")
            .field("email", "TEXT")
            .index("idx_users_email", ["email"], unique=True)
            .foreign_key("fk_org", "orgs", ["email"], ["email"])
            .build()
        )
        assert plan(table, live_users()) == UpgradeMode.RECREATE

    def test_foreign_key_changed(self):
        table = (
            TableBuilder("users")
            .field("id", "INTEGER", identity=True)
            .field("name", "TEXT NOT NULL")
            .field("email", "TEXT")
            .index("idx_users_email", ["email"], unique=True)
            .foreign_key("fk_org", "orgs", ["email"], ["email"])
            .build()
        )
        info = live_users()
        info.foreign_keys = {
            "(email) => teams(email)": ForeignKeyInfo("teams", ["email"], ["email"])
        }
        assert plan(table, info) == UpgradeMode.RECREATE

    def test_foreign_key_unchanged_is_actual(self):
        table = (
            TableBuilder("users")
            .field("id", "INTEGER", identity=True)
            .field("name", "TEXT NOT NULL")
            .field("email", "TEXT")
            .index("idx_users_email", ["email"], unique=True)
            .foreign_key("fk_org", "main.orgs", ["email"], ["email"])
            .build()
        )
        info = live_users()
        info.foreign_keys = {
            "(email) => orgs(email)": ForeignKeyInfo("orgs", ["email"], ["email"])
        }
        assert plan(table, info) == UpgradeMode.ACTUAL

    def test_column_dropped(self):
        info = live_users(
            columns={"id": "INTEGER", "name": "TEXT", "email": "TEXT", "legacy": "TEXT"}
        )
        assert plan(make_users_table(), info) == UpgradeMode.RECREATE

    def test_kept_nullable_old_column_is_actual(self):
        info = live_users(
            columns={"id": "INTEGER", "name": "TEXT", "email": "TEXT", "legacy": "TEXT"}
        )
        opts = UpgradeOptions(keep_old_columns=True)
        assert plan(make_users_table(), info, opts) == UpgradeMode.ACTUAL

    def test_kept_not_null_old_column_forces_recreate(self):
        info = live_users(
            columns={"id": "INTEGER", "name": "TEXT", "email": "TEXT", "legacy": "TEXT"},
            not_null={"name", "legacy"},
        )
        opts = UpgradeOptions(keep_old_columns=True)
        assert plan(make_users_table(), info, opts) == UpgradeMode.RECREATE

    def test_affinity_changed(self):
        info = live_users(columns={"id": "INTEGER", "name": "BLOB", "email": "TEXT"})
        assert plan(make_users_table(), info) == UpgradeMode.RECREATE

    def test_same_affinity_different_spelling_is_actual(self):
        info = live_users(columns={"id": "INT", "name": "VARCHAR(10)", "email": "CLOB"})
        assert plan(make_users_table(), info) == UpgradeMode.ACTUAL

    def test_nullability_changed(self):
        info = live_users(not_null=set())
        assert plan(make_users_table(), info) == UpgradeMode.RECREATE

    def test_without_rowid_key_reported_not_null_is_actual(self):
        table = make_users_table(without_rowid=True)
        assert plan(table, live_users(not_null={"id", "name"})) == UpgradeMode.ACTUAL

    def test_without_rowid_other_column_nullability_still_compared(self):
        table = make_users_table(without_rowid=True)
        info = live_users(not_null={"id", "name", "email"})
        assert plan(table, info) == UpgradeMode.RECREATE

    def test_default_changed(self):
        info = live_users(defaults={"email": "'x'"})
        assert plan(make_users_table(), info) == UpgradeMode.RECREATE

    def test_matching_defaults_are_actual(self):
        table = (
            TableBuilder("t")
            .field("quoted", "TEXT DEFAULT 'it''s'")
            .field("expr", "TEXT DEFAULT (datetime('now'))")
            .field("num", "INTEGER DEFAULT 0")
            .build()
        )
        info = make_table_info(
            "t",
            columns={"quoted": "TEXT", "expr": "TEXT", "num": "INTEGER"},
            defaults={"quoted": "'it''s'", "expr": "datetime('now')", "num": "0"},
        )
        assert plan(table, info) == UpgradeMode.ACTUAL

    def test_primary_key_changed(self):
        info = live_users(primary_key=["email"])
        assert plan(make_users_table(), info) == UpgradeMode.RECREATE

    def test_primary_key_added(self):
        info = live_users(primary_key=[])
        assert plan(make_users_table(), info) == UpgradeMode.RECREATE

    def test_autoincrement_requested(self):
        table = make_users_table(auto_increment=True)
        assert plan(table, live_users()) == UpgradeMode.RECREATE

    def test_autoincrement_matches(self):
        table = make_users_table(auto_increment=True)
        assert plan(table, live_users(auto_increment=True)) == UpgradeMode.ACTUAL

    def test_recreate_wins_over_alter(self):
        """A dropped column and a new column together still need a rebuild."""
        info = live_users(columns={"id": "INTEGER", "name": "TEXT", "legacy": "TEXT"})
        assert plan(make_users_table(), info) == UpgradeMode.RECREATE


class TestPlanAlter:
    """Additive changes applied with ALTER TABLE / CREATE INDEX."""

    def test_column_added(self):
        info = live_users(columns={"id": "INTEGER", "name": "TEXT"})
        assert plan(make_users_table(), info) == UpgradeMode.ALTER

    def test_column_added_with_kept_old_column(self):
        info = live_users(columns={"id": "INTEGER", "name": "TEXT", "legacy": "TEXT"})
        opts = UpgradeOptions(keep_old_columns=True)
        assert plan(make_users_table(), info, opts) == UpgradeMode.ALTER

    def test_index_added(self):
        info = live_users(indexes={})
        assert plan(make_users_table(), info) == UpgradeMode.ALTER

    def test_index_dropped(self):
        info = live_users(indexes={"idx_users_email": ["email"], "idx_old": ["name"]})
        assert plan(make_users_table(), info) == UpgradeMode.ALTER

    def test_index_renamed(self):
        info = live_users(indexes={"idx_other": ["email"]})
        assert plan(make_users_table(), info) == UpgradeMode.ALTER

    def test_index_columns_changed(self):
        info = live_users(indexes={"idx_users_email": ["name"]})
        assert plan(make_users_table(), info) == UpgradeMode.ALTER
