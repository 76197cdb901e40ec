"""core/__init__.py"""
from core.database import (
    ConnectionLostError,
    DatabaseError,
    MySQLSource,
    RowStream,
    SQLiteDestination,
)
from core.exporter import (
    ExportEngine,
    ExportError,
    ProgressSink,
    SchemaMismatchError,
    TransferResult,
)
from core.schema_builder import ColumnDescriptor, TableDefinition, build_create_statement
from core.table_selector import IgnoreMatcher, list_tables, should_skip_data
from core.type_converter import StorageClass, build_default_clause, map_type
from core.values import normalize_value

__all__ = [
    "ConnectionLostError",
    "DatabaseError",
    "MySQLSource",
    "RowStream",
    "SQLiteDestination",
    "ExportEngine",
    "ExportError",
    "ProgressSink",
    "SchemaMismatchError",
    "TransferResult",
    "ColumnDescriptor",
    "TableDefinition",
    "build_create_statement",
    "IgnoreMatcher",
    "list_tables",
    "should_skip_data",
    "StorageClass",
    "build_default_clause",
    "map_type",
    "normalize_value",
]
