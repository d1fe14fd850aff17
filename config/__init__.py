"""Configuration module for the address extractor"""

from . import maps_config

__all__ = ['maps_config']
