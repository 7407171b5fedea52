"""Configuration module for Cascade-Extract.

Centralized host configuration using pydantic-settings, with strict
validation of all environment variables.
"""

from config.settings import GlobalConfig, get_config

__all__ = ["GlobalConfig", "get_config"]
