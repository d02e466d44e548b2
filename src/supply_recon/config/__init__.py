"""
Configuration package.

This package contains environment-driven settings loading and validation.
"""

from supply_recon.config.config import Settings

__all__ = ["Settings"]
