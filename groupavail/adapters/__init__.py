"""
Adapters layer - Calendar sources, presence stores and broadcast channels.
"""

from .graph_client import GraphClient
from .mock_calendar import MockCalendarClient
from .presence_channel import InMemoryPresenceChannel, RedisPresenceChannel
from .presence_store import InMemoryPresenceStore, RedisPresenceStore

__all__ = [
    "GraphClient",
    "InMemoryPresenceChannel",
    "InMemoryPresenceStore",
    "MockCalendarClient",
    "RedisPresenceChannel",
    "RedisPresenceStore",
]
