"""
Built-in provider facts.
"""

from .default_data import default_bundle

__all__ = ["default_bundle"]
