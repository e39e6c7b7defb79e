"""
CLI entry point for tiercache.

This module serves as the entry point when tiercache.cli is executed as a module
with `python -m tiercache.cli`.
"""

from .main import main

if __name__ == "__main__":
    main()
