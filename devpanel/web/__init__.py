"""
Dashboard API package for DevPanel.

This package contains the Starlette application that exposes service status,
configuration checks and start/stop commands to the browser dashboard.
"""
