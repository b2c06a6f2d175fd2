"""RTM database package."""

from rtmx.db.csv_codec import dumps, find_database, load, loads, read_csv, save, write_csv
from rtmx.db.store import FilterOptions, RTMDatabase, ReciprocityIssue

__all__ = [
    "FilterOptions",
    "RTMDatabase",
    "ReciprocityIssue",
    "dumps",
    "find_database",
    "load",
    "loads",
    "read_csv",
    "save",
    "write_csv",
]
