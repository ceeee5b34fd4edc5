"""
Store module for gridsheet.

This module provides the persistence backends a sheet editor saves to:
the SheetStore protocol, an in-memory store and a Google Sheets-backed store.
"""

from gridsheet.store.base import SheetStore
from gridsheet.store.gsheets import GSheetsStore
from gridsheet.store.memory import MemoryStore

__all__ = [
    "SheetStore",
    "MemoryStore",
    "GSheetsStore",
]
