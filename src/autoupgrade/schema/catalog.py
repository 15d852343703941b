"""Live table metadata as read from the SQLite catalog."""

from dataclasses import dataclass, field
from typing import Optional

from autoupgrade.types import TypeAffinity


@dataclass
class ColumnInfo:
    name: str
    type: str
    type_affinity: TypeAffinity
    not_null: bool
    default_value: Optional[str] = None


@dataclass
class IndexColumnInfo:
    """One column of an index; `key` is False for auxiliary columns."""

    name: Optional[str]
    desc: bool = False
    coll: Optional[str] = None
    key: bool = True


@dataclass
class IndexInfo:
    name: str
    unique: bool
    partial: bool
    columns: list[IndexColumnInfo] = field(default_factory=list)

    @property
    def column_names(self) -> list[Optional[str]]:
        return [col.name for col in self.columns]


@dataclass
class ForeignKeyInfo:
    ref_table: str
    columns: list[str]
    ref_columns: list[str]


@dataclass
class CatalogTableInfo:
    """Snapshot of one existing table.

    Foreign keys are keyed by their generic id rather than the constraint
    name, which SQLite does not report.
    """

    name: str
    table_name: str
    schema_name: str
    columns: dict[str, ColumnInfo] = field(default_factory=dict)
    primary_key: list[str] = field(default_factory=list)
    auto_increment: bool = False
    indexes: dict[str, IndexInfo] = field(default_factory=dict)
    foreign_keys: dict[str, ForeignKeyInfo] = field(default_factory=dict)

    def get_column(self, name: str) -> Optional[ColumnInfo]:
        return self.columns.get(name)
