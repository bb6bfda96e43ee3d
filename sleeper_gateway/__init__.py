"""
Sleeper Gateway Package

Read-only tool execution service over the public Sleeper fantasy API for
football and basketball leagues.
"""

from .server import create_app, main

__version__ = "1.0.0"
__all__ = ["create_app", "main"]
