"""
ScoreDewarp - Services Package

Geometry, warp grid and resampling services for page dewarping.
"""

from scoredewarp.services.target_builder import DewarpResult, TargetBuilder

__all__ = ["DewarpResult", "TargetBuilder"]
