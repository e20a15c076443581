"""
Group availability engine: calendar busy intervals plus expiring presence.
"""

__version__ = "0.1.0"
