"""Scope clients: how component objects are retrieved from remotes."""

from compsync.remote.client import HttpScopeClient
from compsync.remote.directory import DirectoryScopeStore
from compsync.remote.payload import ComponentPayload
from compsync.remote.registry import RemoteRegistry, RemoteStore

__all__ = [
    "ComponentPayload",
    "DirectoryScopeStore",
    "HttpScopeClient",
    "RemoteRegistry",
    "RemoteStore",
]
