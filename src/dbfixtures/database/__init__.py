"""Database access layer."""

from dbfixtures.database.base import DatabaseAccess, Record
from dbfixtures.database.registry import DEFAULT_DATA_SOURCE, DataSourceRegistry
from dbfixtures.database.sqlalchemy_access import SqlAlchemyDatabase
from dbfixtures.database.values import parse_bool, to_cell, to_db_value

__all__ = [
    "DEFAULT_DATA_SOURCE",
    "DataSourceRegistry",
    "DatabaseAccess",
    "Record",
    "SqlAlchemyDatabase",
    "parse_bool",
    "to_cell",
    "to_db_value",
]
