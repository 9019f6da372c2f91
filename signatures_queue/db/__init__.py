from .schema import MAPPINGS, SCHEMA_VERSION, TableMapping, create_all, table_columns
from .tx import DbFactory, DbTransaction, DbTx

__all__ = [
    "DbFactory",
    "DbTransaction",
    "DbTx",
    "MAPPINGS",
    "SCHEMA_VERSION",
    "TableMapping",
    "create_all",
    "table_columns",
]
