"""
Main entry point for running the package as a module.

Usage:
    python -m vms_hours show --date 2026-02-18
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
