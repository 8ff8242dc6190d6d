"""
ScoreDewarp - Python package for dewarping scanned music pages

This package builds an idealized page model (straight, evenly spaced
staff lines) from detected staff-line geometry and resamples the
scanned image so that it matches that model.
"""

__version__ = "1.0.0"
__author__ = "ScoreDewarp Team"
__license__ = "GPL-3.0"


def main() -> int:
    """Main entry point for the command line tool.

    Returns:
        The process exit code.
    """
    from scoredewarp.cli import main as cli_main

    return cli_main()
