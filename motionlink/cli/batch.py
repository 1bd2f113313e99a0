"""
CLI entry point for the motionlink-batch command.

This module provides the command-line interface for batch trajectory retargeting.
"""

import sys

from motionlink.batch import main


def main_entry():
    """Entry point for the motionlink-batch command."""
    sys.exit(main())


if __name__ == "__main__":
    main_entry()
