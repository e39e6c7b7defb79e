"""
Command-line interface implementation.

This module provides the maintenance command-line interface for tiercache:
- Policy table inspection
- Durable cache directory inspection and purging
"""

from .main import cli, main

__all__ = [
    "cli",
    "main",
]
