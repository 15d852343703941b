"""Tests for UpgradeExecutor statement sequences."""

import pytest

from autoupgrade.exceptions import InvariantError, UpgradeExecutionError
from autoupgrade.types import UpgradeMode
from autoupgrade.upgrade.executor import UpgradeExecutor
from autoupgrade.upgrade.planner import UpgradeInfo, UpgradeOptions
from tests.helpers import FakeSession, make_table_info, make_users_table


def live_users(**kwargs):
    params = dict(
        columns={"id": "INTEGER", "name": "TEXT", "email": "TEXT"},
        primary_key=["id"],
        indexes={"idx_users_email": ["email"]},
        not_null={"name"},
    )
    params.update(kwargs)
    return make_table_info("users", **params)


class TestExecuteDispatch:
    @pytest.mark.asyncio
    async def test_actual_issues_nothing(self):
        session = FakeSession()
        info = UpgradeInfo(table_info=live_users(), upgrade_mode=UpgradeMode.ACTUAL)
        await UpgradeExecutor(session).execute(make_users_table(), info)
        assert session.statements == []

    @pytest.mark.asyncio
    async def test_alter_without_catalog_info_is_invariant_error(self):
        info = UpgradeInfo(table_info=None, upgrade_mode=UpgradeMode.ALTER)
        with pytest.raises(InvariantError):
            await UpgradeExecutor(FakeSession()).execute(make_users_table(), info)

    @pytest.mark.asyncio
    async def test_recreate_without_catalog_info_is_invariant_error(self):
        info = UpgradeInfo(table_info=None, upgrade_mode=UpgradeMode.RECREATE)
        with pytest.raises(InvariantError):
            await UpgradeExecutor(FakeSession()).execute(make_users_table(), info)


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_then_indexes(self):
        session = FakeSession()
        info = UpgradeInfo(table_info=None, upgrade_mode=UpgradeMode.CREATE)
        await UpgradeExecutor(session).execute(make_users_table(), info)
        assert session.statements[0].startswith('CREATE TABLE IF NOT EXISTS "users"')
        assert session.statements[1:] == [
            'CREATE UNIQUE INDEX IF NOT EXISTS "idx_users_email" ON "users" ("email")'
        ]
        assert session.transactions == []

    @pytest.mark.asyncio
    async def test_failure_names_table_and_action(self):
        session = FakeSession(failures=[r"^CREATE TABLE"])
        with pytest.raises(UpgradeExecutionError) as exc_info:
            await UpgradeExecutor(session).create_table(make_users_table())
        err = exc_info.value
        assert err.table_name == "users"
        assert err.action == "create table"
        assert err.statement.startswith("CREATE TABLE")
        assert "table 'users': create table failed" in str(err)


class TestAlter:
    @pytest.mark.asyncio
    async def test_adds_missing_columns(self):
        session = FakeSession()
        info = live_users(columns={"id": "INTEGER", "name": "TEXT"})
        await UpgradeExecutor(session).alter_table(make_users_table(), info)
        assert session.statements == ['ALTER TABLE "users" ADD COLUMN "email" TEXT']

    @pytest.mark.asyncio
    async def test_drops_removed_and_changed_indexes(self):
        session = FakeSession()
        info = live_users(indexes={"idx_users_email": ["name"], "idx_old": ["name"]})
        await UpgradeExecutor(session).alter_table(make_users_table(), info)
        assert sorted(session.statements) == sorted(
            [
                'DROP INDEX IF EXISTS "idx_users_email"',
                'DROP INDEX IF EXISTS "idx_old"',
                'CREATE UNIQUE INDEX IF NOT EXISTS "idx_users_email" ON "users" ("email")',
            ]
        )

    @pytest.mark.asyncio
    async def test_keeps_unchanged_indexes(self):
        session = FakeSession()
        info = live_users(columns={"id": "INTEGER", "name": "TEXT"})
        await UpgradeExecutor(session).alter_table(make_users_table(), info)
        assert not any("INDEX" in s for s in session.statements)

    @pytest.mark.asyncio
    async def test_does_not_mutate_catalog_info(self):
        info = live_users(indexes={"idx_old": ["name"]})
        await UpgradeExecutor(FakeSession()).alter_table(make_users_table(), info)
        assert list(info.indexes) == ["idx_old"]


class TestRecreate:
    """Rebuild sequence inside one transaction."""

    @pytest.mark.asyncio
    async def test_statement_sequence(self):
        session = FakeSession(responses=[(r"^PRAGMA legacy_alter_table$", [{"legacy_alter_table": 0}])])
        info = live_users(columns={"id": "INTEGER", "name": "TEXT", "legacy": "TEXT"})
        await UpgradeExecutor(session).recreate_table(make_users_table(), info)

        assert session.statements[:3] == [
            "PRAGMA legacy_alter_table",
            "PRAGMA legacy_alter_table = ON",
            'ALTER TABLE "users" RENAME TO "users_autoupgrade"',
        ]
        assert session.statements[3].startswith('CREATE TABLE IF NOT EXISTS "users"')
        assert '"legacy"' not in session.statements[3]
        assert session.statements[4:] == [
            'INSERT INTO "users" ("id", "name")\nSELECT "id", "name"\nFROM "users_autoupgrade"',
            'DROP TABLE IF EXISTS "users_autoupgrade"',
            "PRAGMA legacy_alter_table = OFF",
            'CREATE UNIQUE INDEX IF NOT EXISTS "idx_users_email" ON "users" ("email")',
        ]
        assert session.transactions == ["begin", "commit"]

    @pytest.mark.asyncio
    async def test_restores_legacy_alter_table_when_it_was_on(self):
        session = FakeSession(responses=[(r"^PRAGMA legacy_alter_table$", [{"legacy_alter_table": 1}])])
        await UpgradeExecutor(session).recreate_table(make_users_table(), live_users())
        assert "PRAGMA legacy_alter_table = ON" in session.statements[-2:]
        assert "PRAGMA legacy_alter_table = OFF" not in session.statements

    @pytest.mark.asyncio
    async def test_keep_old_columns_carries_them_over_as_nullable(self):
        session = FakeSession()
        info = live_users(
            columns={"id": "INTEGER", "name": "TEXT", "email": "TEXT", "legacy": "VARCHAR(5)"},
            defaults={"legacy": "'n/a'"},
            not_null={"name", "legacy"},
        )
        await UpgradeExecutor(session).recreate_table(
            make_users_table(), info, keep_old_columns=True
        )
        create = next(s for s in session.statements if s.startswith("CREATE TABLE"))
        assert "\"legacy\" VARCHAR(5) DEFAULT('n/a')\n)" in create
        copy = next(s for s in session.statements if s.startswith("INSERT"))
        assert copy.startswith('INSERT INTO "users" ("id", "name", "email", "legacy")')

    @pytest.mark.asyncio
    async def test_keep_old_columns_from_upgrade_info(self):
        session = FakeSession()
        info = UpgradeInfo(
            table_info=live_users(
                columns={"id": "INTEGER", "name": "TEXT", "email": "TEXT", "legacy": "TEXT"}
            ),
            upgrade_mode=UpgradeMode.RECREATE,
            opts=UpgradeOptions(keep_old_columns=True),
        )
        await UpgradeExecutor(session).execute(make_users_table(), info)
        create = next(s for s in session.statements if s.startswith("CREATE TABLE"))
        assert '"legacy" TEXT' in create

    @pytest.mark.asyncio
    async def test_no_copy_without_shared_columns(self):
        session = FakeSession()
        info = live_users(columns={"other": "TEXT"}, primary_key=[], not_null=set())
        await UpgradeExecutor(session).recreate_table(make_users_table(), info)
        assert not any(s.startswith("INSERT") for s in session.statements)

    @pytest.mark.asyncio
    async def test_failure_rolls_back_and_restores_pragma(self):
        session = FakeSession(failures=[r"^INSERT INTO"])
        with pytest.raises(UpgradeExecutionError) as exc_info:
            await UpgradeExecutor(session).recreate_table(make_users_table(), live_users())

        assert exc_info.value.action == "recreate table"
        assert exc_info.value.statement.startswith("INSERT INTO")
        assert session.transactions == ["begin", "rollback"]
        assert session.statements[-1] == "PRAGMA legacy_alter_table = OFF"
        assert not any("CREATE UNIQUE INDEX" in s for s in session.statements)
