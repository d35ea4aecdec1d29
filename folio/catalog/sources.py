"""
Remote Catalog Sources
======================
Zero-argument fetchers returning the published catalog as a list of
records. Failures are raised; the merger decides to swallow them.
"""

import json
import logging
from typing import Optional

import httpx

from folio.errors import TransportError, ValidationError
from folio.remote.base import IContentStore


logger = logging.getLogger(__name__)


def parse_catalog(data: bytes, path: str = None) -> list:
    """
    Parse catalog bytes into a list of records.

    Raises:
        ValidationError: not UTF-8 JSON, or not a JSON array
    """
    try:
        records = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ValidationError("catalog is not valid JSON", details=str(exc), path=path) from exc
    if not isinstance(records, list):
        raise ValidationError("catalog is not a JSON array", path=path)
    return records


def content_store_source(store: IContentStore, path: str):
    """Read the catalog through the content store; a missing file is empty."""

    async def fetch() -> list:
        remote_file = await store.read_file(path)
        if remote_file is None:
            return []
        return parse_catalog(remote_file.content, path=path)

    return fetch


def url_source(url: str, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
    """Fetch the catalog from a plain URL, bypassing caches."""

    async def fetch() -> list:
        headers = {"Cache-Control": "no-store"}
        try:
            if client is not None:
                response = await client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=timeout) as owned:
                    response = await owned.get(url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError("catalog fetch failed", details=str(exc), path=url) from exc
        return parse_catalog(response.content, path=url)

    return fetch
