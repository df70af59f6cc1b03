"""
Configuration management for the DAM client.

Contains Pydantic settings and the logging setup shared by the library and CLI.
"""

from .settings import Settings, get_settings, configure_logging

__all__ = ['Settings', 'get_settings', 'configure_logging']
