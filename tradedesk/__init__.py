"""Trading desk service core: login timing, account groups, order allocation and SQLite persistence."""

__version__ = "0.1.0"