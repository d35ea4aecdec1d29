"""
GitHub Content Store
====================
IContentStore backed by the repository contents REST API.

Files are read with GET /repos/{owner}/{repo}/contents/{path} and written
with PUT on the same URL. The blob "sha" returned by a read is the version
token; an update must send it back, a create must not.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from folio.errors import ConflictError, RemoteRejectedError, TransportError
from folio.remote.base import IContentStore, RemoteFile, WriteResult
from folio.remote.codec import decode_content, encode_content, encode_path


logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


class GitHubContentStore(IContentStore):
    """Contents API client with optimistic concurrency on the blob sha."""

    def __init__(
        self,
        owner: str,
        repo: str,
        token: Optional[str] = None,
        branch: str = "main",
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the store.

        Args:
            owner: Repository owner
            repo: Repository name
            token: Access token sent as a bearer credential
            branch: Branch to read from and write to
            api_url: API root
            timeout: Per-request timeout in seconds
            client: Pre-built client (tests pass one with a mock transport)
        """
        self.owner = owner
        self.repo = repo
        self.branch = branch
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=api_url, timeout=timeout)
        self._headers = headers

    def _url(self, path: str) -> str:
        return f"/repos/{encode_path(self.owner)}/{encode_path(self.repo)}/contents/{encode_path(path)}"

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict):
            return str(body.get("message") or body)[:200]
        return str(body)[:200]

    async def read_file(self, path: str) -> Optional[RemoteFile]:
        try:
            response = await self._client.get(
                self._url(path),
                params={"ref": self.branch},
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            raise TransportError("read failed", details=str(exc), path=path) from exc

        if response.status_code == 404:
            logger.debug(f"{path} not found on {self.owner}/{self.repo}@{self.branch}")
            return None
        if response.status_code >= 400:
            raise RemoteRejectedError(response.status_code, details=self._error_text(response), path=path)

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError("read returned invalid JSON", details=str(exc), path=path) from exc
        if not isinstance(body, dict) or body.get("type", "file") != "file" or "sha" not in body:
            raise TransportError("read did not return a file", path=path)

        content = decode_content(body.get("content") or "", path=path)
        return RemoteFile(path=path, content=content, version_token=body["sha"])

    async def write_file(
        self,
        path: str,
        content: bytes,
        message: str,
        expected_token: Optional[str] = None,
    ) -> WriteResult:
        payload = {
            "message": message,
            "content": encode_content(content),
            "branch": self.branch,
        }
        if expected_token:
            payload["sha"] = expected_token

        try:
            response = await self._client.put(self._url(path), json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            raise TransportError("write failed", details=str(exc), path=path) from exc

        if response.status_code == 409:
            raise ConflictError(path, details=self._error_text(response))
        if response.status_code == 422:
            detail = self._error_text(response)
            if "sha" in detail.lower():
                raise ConflictError(path, details=detail)
            raise RemoteRejectedError(422, details=detail, path=path)
        if response.status_code >= 400:
            raise RemoteRejectedError(response.status_code, details=self._error_text(response), path=path)

        try:
            token = response.json()["content"]["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            raise TransportError("write response had no content sha", details=str(exc), path=path) from exc

        logger.info(f"Wrote {path} to {self.owner}/{self.repo}@{self.branch} ({token[:7]})")
        return WriteResult(path=path, version_token=token, created=response.status_code == 201)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
