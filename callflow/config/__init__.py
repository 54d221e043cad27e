"""Configuration module."""

from callflow.config.constants import FLOW, FlowConstants
from callflow.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "FlowConstants", "FLOW"]
