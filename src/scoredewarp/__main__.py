#!/usr/bin/env python3
"""
ScoreDewarp - Entry point for python -m scoredewarp

This module allows the package to be run as a module:
    python -m scoredewarp dewarp page.json -o out/
"""

import sys

from scoredewarp import main

if __name__ == "__main__":
    sys.exit(main())
