"""
Remote document store backends.

- RemoteStore: Protocol every backend implements
- InMemoryRemoteStore: In-process store for tests and local development
- HttpRemoteStore: REST adapter over httpx
"""

from .base import (
    RemoteDoc,
    RemoteError,
    RemoteStore,
    RemoteTimeoutError,
    RemoteUnavailableError,
    is_transient,
)
from .http import HttpRemoteStore
from .memory import InMemoryRemoteStore

__all__ = [
    "RemoteDoc",
    "RemoteError",
    "RemoteStore",
    "RemoteTimeoutError",
    "RemoteUnavailableError",
    "is_transient",
    "HttpRemoteStore",
    "InMemoryRemoteStore",
]
