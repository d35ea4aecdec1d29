"""
Remote Module
=============
Versioned content stores that books are published to.
"""

from .base import IContentStore, RemoteFile, WriteResult
from .github import GitHubContentStore
from .memory import InMemoryContentStore

__all__ = [
    "IContentStore",
    "RemoteFile",
    "WriteResult",
    "GitHubContentStore",
    "InMemoryContentStore",
]
