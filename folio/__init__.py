"""
Folio
=====
Local book drafting with publishing to a versioned remote content store.

Key Components:
    - storage: local draft store (books, chapters, covers, export)
    - catalog: merge of the remote catalog with locally published drafts
    - publish: optimistic-concurrency publish synchronizer
    - remote: content store implementations
    - app: configuration, events and the controller facade
"""

__version__ = "0.3.0"
