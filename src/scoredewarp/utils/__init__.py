"""
ScoreDewarp - Utils Package

Utility modules for the package.
"""

from scoredewarp.utils.exceptions import (
    ConfigurationError,
    DegenerateGeometryError,
    ProcessingCancelledError,
    ScoreDewarpError,
    StructuralInconsistencyError,
    ValidationError,
)

__all__ = [
    "ConfigurationError",
    "DegenerateGeometryError",
    "ProcessingCancelledError",
    "ScoreDewarpError",
    "StructuralInconsistencyError",
    "ValidationError",
]
