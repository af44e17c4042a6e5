#!/usr/bin/env python3
"""
SKU Migration Verifier - Main Entry Point
Reconcile legacy and migrated SKU tables for every tenant database.
"""

import sys

from sku_verify.cli import main


if __name__ == "__main__":
    sys.exit(main())
