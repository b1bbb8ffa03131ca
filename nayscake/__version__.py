"""
Version information, overwritten by the release build.
"""

__version__ = "0.1.0"
__build_time__ = "unknown"
