"""
Utility functions for gridsheet.

This module provides utilities for working with grid snapshots:
- visualization: Plain-text table rendering of a grid
- serialization: JSON serialization/deserialization of a grid
- logging: Logger setup for applications embedding the editor
"""

from .logging import configure_logging
from .visualization import render_text
from .serialization import (
    serialize,
    deserialize,
    to_json,
    from_json,
    SERIALIZATION_VERSION
)

__all__ = [
    'configure_logging',
    'render_text',
    'serialize',
    'deserialize',
    'to_json',
    'from_json',
    'SERIALIZATION_VERSION'
]
