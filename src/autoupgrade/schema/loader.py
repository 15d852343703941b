"""Load table definitions from YAML files."""

from pathlib import Path
from typing import Any

import yaml

from autoupgrade.exceptions import DefinitionError, SchemaLoadError
from autoupgrade.schema.models import IndexField, Schema, TableBuilder, TableDefinition

VALID_TABLE_FIELDS = {
    "table",
    "description",
    "columns",
    "indexes",
    "foreign_keys",
    "auto_increment",
    "without_rowid",
}

VALID_COLUMN_FIELDS = {"name", "type", "identity", "comment"}

VALID_INDEX_FIELDS = {"name", "columns", "unique"}

VALID_FOREIGN_KEY_FIELDS = {"name", "references", "columns", "ref_columns", "on_delete"}


def load_schema(schema_path: Path) -> Schema:
    """Load definitions from a directory of YAML files or a single file."""
    if schema_path.is_file():
        return _load_single_file(schema_path)
    elif schema_path.is_dir():
        return _load_directory(schema_path)
    else:
        raise SchemaLoadError(f"Schema path does not exist: {schema_path}")


def _load_directory(directory: Path) -> Schema:
    schema = Schema()
    for yaml_file in sorted(directory.glob("*.yaml")):
        table = _parse_table_dict(_read_yaml(yaml_file))
        if table.name in schema.tables:
            raise SchemaLoadError(
                f"Duplicate table name '{table.name}' found in directory"
            )
        schema.add_table(table)
    return schema


def _load_single_file(file_path: Path) -> Schema:
    data = _read_yaml(file_path)
    schema = Schema()
    tables_data = data.get("tables", []) if "tables" in data else [data]
    for table_data in tables_data:
        table = _parse_table_dict(table_data)
        if table.name in schema.tables:
            raise SchemaLoadError(f"Duplicate table name '{table.name}' in file")
        schema.add_table(table)
    return schema


def _read_yaml(file_path: Path) -> dict:
    with open(file_path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise SchemaLoadError(f"Invalid YAML in {file_path}: {e}") from e
    if data is None:
        raise SchemaLoadError(f"Empty YAML file: {file_path}")
    if not isinstance(data, dict):
        raise SchemaLoadError(f"Expected a mapping in {file_path}")
    return data


def _check_keys(data: dict, valid: set[str], what: str) -> None:
    unknown_fields = set(data.keys()) - valid
    if unknown_fields:
        raise SchemaLoadError(
            f"Unknown field(s) in {what} definition: {', '.join(sorted(unknown_fields))}"
        )


def _parse_table_dict(data: dict) -> TableDefinition:
    """Parse a table definition from a dictionary."""
    _check_keys(data, VALID_TABLE_FIELDS, "table")

    name = data.get("table")
    if not name:
        raise SchemaLoadError("Table definition missing 'table' field")

    builder = TableBuilder(
        name,
        auto_increment=bool(data.get("auto_increment", False)),
        without_rowid=bool(data.get("without_rowid", False)),
    )
    try:
        for col in data.get("columns", []):
            _add_column(builder, name, col)
        for idx in data.get("indexes", []):
            _add_index(builder, idx)
        for fk in data.get("foreign_keys", []):
            _add_foreign_key(builder, fk)
        return builder.build()
    except DefinitionError as e:
        raise SchemaLoadError(str(e)) from e


def _add_column(builder: TableBuilder, table_name: str, data: dict) -> None:
    _check_keys(data, VALID_COLUMN_FIELDS, "column")

    name = data.get("name")
    if not name:
        raise SchemaLoadError("Column definition missing 'name' field")

    col_type = data.get("type")
    if not col_type:
        raise SchemaLoadError(f"Column '{name}' missing 'type' field")

    if builder.has_field(name):
        raise SchemaLoadError(f"Duplicate column name '{name}' in table '{table_name}'")
    builder.field(name, str(col_type), identity=bool(data.get("identity", False)))


def _add_index(builder: TableBuilder, data: dict) -> None:
    _check_keys(data, VALID_INDEX_FIELDS, "index")
    name = data.get("name")
    if not name:
        raise SchemaLoadError("Index definition missing 'name' field")
    builder.index(
        name,
        [_parse_index_column(col) for col in data.get("columns", [])],
        unique=bool(data.get("unique", False)),
    )


def _parse_index_column(data: Any) -> IndexField:
    if isinstance(data, str):
        return IndexField(data)
    if isinstance(data, dict) and data.get("name"):
        return IndexField(data["name"], desc=bool(data.get("desc", False)))
    raise SchemaLoadError(f"Invalid index column: {data!r}")


def _add_foreign_key(builder: TableBuilder, data: dict) -> None:
    _check_keys(data, VALID_FOREIGN_KEY_FIELDS, "foreign key")
    name = data.get("name")
    if not name:
        raise SchemaLoadError("Foreign key definition missing 'name' field")
    references = data.get("references")
    if not references:
        raise SchemaLoadError(f"Foreign key '{name}' missing 'references' field")
    builder.foreign_key(
        name,
        references,
        data.get("columns", []),
        data.get("ref_columns", []),
        on_delete=data.get("on_delete", "CASCADE"),
    )
