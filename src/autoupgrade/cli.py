"""Command-line interface for autoupgrade."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from autoupgrade.exceptions import ConfigError
from autoupgrade.schema.loader import load_schema
from autoupgrade.sqlite.utils import (
    build_config_and_validate,
    plan_schema,
    read_table_info,
    upgrade_schema,
)
from autoupgrade.types import UpgradeMode
from autoupgrade.upgrade.planner import UpgradeOptions


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="autoupgrade",
        description="Keep SQLite tables in sync with YAML table definitions",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser(
        "validate", help="Validate table definition files"
    )
    validate_parser.add_argument("--schema-path", type=Path, default=Path("schema"))

    plan_parser = subparsers.add_parser("plan", help="Show the upgrade mode per table")
    _add_db_arguments(plan_parser)

    upgrade_parser = subparsers.add_parser("upgrade", help="Upgrade all tables")
    _add_db_arguments(upgrade_parser)

    inspect_parser = subparsers.add_parser("inspect", help="Show a live table")
    inspect_parser.add_argument("table", help="Table name, optionally schema-qualified")
    inspect_parser.add_argument("--database", help="SQLite database file")
    inspect_parser.add_argument("--profile", help="Profile in ~/.autoupgrade.cfg")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s"
    )

    if args.command == "validate":
        return cmd_validate(args)
    elif args.command == "plan":
        return cmd_plan(args)
    elif args.command == "upgrade":
        return cmd_upgrade(args)
    else:
        return cmd_inspect(args)


def _add_db_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--schema-path", type=Path, default=None)
    parser.add_argument("--database", help="SQLite database file")
    parser.add_argument("--profile", help="Profile in ~/.autoupgrade.cfg")
    parser.add_argument(
        "--keep-old-columns",
        action="store_true",
        default=None,
        help="Keep columns that are no longer declared (as nullable)",
    )
    parser.add_argument(
        "--force-recreate",
        action="store_true",
        default=None,
        help="Rebuild every table even if it is up to date",
    )


def _options(args: argparse.Namespace) -> UpgradeOptions:
    return UpgradeOptions(
        keep_old_columns=args.keep_old_columns, force_recreate=args.force_recreate
    )


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate table definition files."""
    try:
        schema = load_schema(args.schema_path)
        print(f"Validated {len(schema.tables)} tables:")
        for name in sorted(schema.table_names()):
            table = schema.get_table(name)
            print(f"  - {name} ({len(table.fields)} columns)")
        return 0
    except Exception as e:
        print(f"Validation error: {e}", file=sys.stderr)
        return 1


def cmd_plan(args: argparse.Namespace) -> int:
    """Show what an upgrade would do, without changing anything."""
    try:
        config = build_config_and_validate(database=args.database, profile=args.profile)
        schema = load_schema(args.schema_path or Path(config.schema_dir))
        modes = asyncio.run(plan_schema(config, schema, _options(args)))

        pending = {n: m for n, m in modes.items() if m != UpgradeMode.ACTUAL}
        if not pending:
            print("All tables are up to date")
            return 0

        print(f"Found {len(pending)} tables to upgrade:")
        for name, mode in pending.items():
            print(f"  {mode.value}: {name}")
        return 0
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"Plan error: {e}", file=sys.stderr)
        return 1


def cmd_upgrade(args: argparse.Namespace) -> int:
    """Upgrade all declared tables."""
    try:
        config = build_config_and_validate(database=args.database, profile=args.profile)
        schema = load_schema(args.schema_path or Path(config.schema_dir))
        asyncio.run(upgrade_schema(config, schema, _options(args)))
        print(f"Upgraded {len(schema.tables)} tables in {config.database}")
        return 0
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"Upgrade error: {e}", file=sys.stderr)
        return 1


def cmd_inspect(args: argparse.Namespace) -> int:
    """Print the catalog view of one table."""
    try:
        config = build_config_and_validate(database=args.database, profile=args.profile)
        info = asyncio.run(read_table_info(config, args.table))
        if info is None:
            print(f"Table '{args.table}' does not exist")
            return 1

        print(f"Table {info.name}:")
        for col in info.columns.values():
            flags = " NOT NULL" if col.not_null else ""
            if col.default_value is not None:
                flags += f" DEFAULT {col.default_value}"
            pk = " [pk]" if col.name in info.primary_key else ""
            print(f"  {col.name} {col.type} ({col.type_affinity.value}){flags}{pk}")
        if info.auto_increment:
            print("  autoincrement")
        for idx in info.indexes.values():
            unique = "unique " if idx.unique else ""
            print(f"  {unique}index {idx.name} ({', '.join(map(str, idx.column_names))})")
        for fk_id in info.foreign_keys:
            print(f"  foreign key {fk_id}")
        return 0
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"Inspect error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
