"""
Remote Content Store Contract
=============================
Abstract interface for the versioned file store books are published to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RemoteFile:
    """A file as read from the remote store."""
    path: str
    content: bytes
    version_token: str


@dataclass(frozen=True)
class WriteResult:
    """Outcome of an accepted write."""
    path: str
    version_token: str
    created: bool = False


class IContentStore(ABC):
    """
    Versioned remote file store with optimistic concurrency.

    Every file carries an opaque version token. Updates must present
    the token they read; creates must present none.

    Implementations:
        - GitHubContentStore: repository contents REST API
        - InMemoryContentStore: process-local store for offline use and tests
    """

    @abstractmethod
    async def read_file(self, path: str) -> Optional[RemoteFile]:
        """
        Read a file.

        Args:
            path: Hierarchical path, '/' separated

        Returns:
            The file, or None if it does not exist

        Raises:
            TransportError: network or parse failure
            RemoteRejectedError: request refused
        """
        pass

    @abstractmethod
    async def write_file(
        self,
        path: str,
        content: bytes,
        message: str,
        expected_token: Optional[str] = None,
    ) -> WriteResult:
        """
        Create or update a file in one atomic remote operation.

        Args:
            path: Hierarchical path, '/' separated
            content: New bytes
            message: Change description recorded by the store
            expected_token: Token from the last read, None to create

        Returns:
            WriteResult with the new version token

        Raises:
            ConflictError: expected_token is stale or missing
            TransportError: network or parse failure
            RemoteRejectedError: request refused
        """
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        return None
