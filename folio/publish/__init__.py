"""
Publish Module
==============
Publishing drafts to the remote content store.
"""

from .session import PublishSession
from .synchronizer import (
    PublishOutcome,
    PublishReport,
    PublishState,
    PublishSynchronizer,
)

__all__ = [
    "PublishSession",
    "PublishOutcome",
    "PublishReport",
    "PublishState",
    "PublishSynchronizer",
]
