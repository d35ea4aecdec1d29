"""
Publish Session
===============
Explicit session context for publishing: the access token, the current
selection and the content store built from them. Created when the app
starts a publishing session and cleared on disconnect.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from folio.app.config import AppConfig
from folio.errors import ValidationError
from folio.remote.base import IContentStore
from folio.remote.github import GitHubContentStore


logger = logging.getLogger(__name__)


class PublishSession:
    """Session-scoped publishing state."""

    def __init__(self, config: AppConfig, token: Optional[str] = None, store: Optional[IContentStore] = None):
        """
        Args:
            config: Remote coordinates and timeouts
            token: Access token for the remote store
            store: Pre-built store; otherwise a GitHubContentStore is built lazily
        """
        self.config = config
        self._token = token
        self._store = store
        self.selected_book_id: Optional[str] = None
        self.opened_at = datetime.now(timezone.utc)
        self.closed = False

    @property
    def is_active(self) -> bool:
        return not self.closed

    @property
    def has_token(self) -> bool:
        return bool(self._token)

    def select(self, book_id: Optional[str]) -> None:
        """Remember the book currently being edited."""
        self.selected_book_id = book_id

    @property
    def store(self) -> IContentStore:
        """Content store for this session."""
        if self.closed:
            raise ValidationError("publish session is closed")
        if self._store is None:
            if not self.config.has_remote:
                raise ValidationError(
                    "remote repository is not configured",
                    details="set remote_owner and remote_repo",
                )
            self._store = GitHubContentStore(
                owner=self.config.remote_owner,
                repo=self.config.remote_repo,
                token=self._token,
                branch=self.config.remote_branch,
                api_url=self.config.api_url,
                timeout=self.config.request_timeout,
            )
            logger.debug(f"Opened content store for {self.config.remote_owner}/{self.config.remote_repo}")
        return self._store

    async def close(self) -> None:
        """Clear credentials and selection, release the store."""
        if self._store is not None:
            await self._store.aclose()
        self._store = None
        self._token = None
        self.selected_book_id = None
        self.closed = True
        logger.debug("Publish session closed")
