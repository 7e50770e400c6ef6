"""
Local package for the DevPanel control panel.

This package provides configuration loading, process lifecycle tracking and
the management console.
"""

from .config import PanelSettings, ServiceDefinition

__all__ = ["PanelSettings", "ServiceDefinition"]
