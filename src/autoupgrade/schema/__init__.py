"""Table definitions, catalog introspection and statement generation."""

from autoupgrade.schema.catalog import (
    CatalogTableInfo,
    ColumnInfo,
    ForeignKeyInfo,
    IndexColumnInfo,
    IndexInfo,
)
from autoupgrade.schema.dbtype import ColumnTypeInfo, get_type_affinity, parse_db_type
from autoupgrade.schema.models import (
    Field,
    ForeignKeyDefinition,
    ForeignKeyField,
    IndexDefinition,
    IndexField,
    Schema,
    TableBuilder,
    TableDefinition,
    generic_foreign_key_id,
)

__all__ = [
    "CatalogTableInfo",
    "ColumnInfo",
    "ColumnTypeInfo",
    "Field",
    "ForeignKeyDefinition",
    "ForeignKeyField",
    "ForeignKeyInfo",
    "IndexColumnInfo",
    "IndexDefinition",
    "IndexField",
    "IndexInfo",
    "Schema",
    "TableBuilder",
    "TableDefinition",
    "generic_foreign_key_id",
    "get_type_affinity",
    "parse_db_type",
]
