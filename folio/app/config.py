"""
Application Configuration
=========================
Configuration management for the Folio editor and publisher.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Mapping, Optional

from folio.errors import ValidationError


ENV_PREFIX = "FOLIO_"


@dataclass
class AppConfig:
    """
    Application configuration.

    Attributes:
        data_dir: Directory holding the local draft store
        storage_key: Key naming the draft store file
        catalog_path: Remote path of the published catalog index
        content_dir: Remote directory for published book documents
        remote_owner: Owner of the remote repository
        remote_repo: Name of the remote repository
        remote_branch: Branch that publishes write to
        api_url: Root of the remote REST API
        catalog_url: Optional plain URL serving the catalog for reading
        request_timeout: Per-request HTTP timeout in seconds
        publish_timeout: Optional timeout wrapped around each publish step
        commit_message: Message template for book content writes
        catalog_message: Message template for catalog writes
    """

    # Local storage
    data_dir: Path = field(default_factory=lambda: Path("data"))
    storage_key: str = "localBooks_v1"

    # Remote layout
    catalog_path: str = "books.json"
    content_dir: str = "books"
    remote_owner: Optional[str] = None
    remote_repo: Optional[str] = None
    remote_branch: str = "main"
    api_url: str = "https://api.github.com"
    catalog_url: Optional[str] = None

    # Timeouts
    request_timeout: float = 30.0
    publish_timeout: Optional[float] = None

    # Write messages
    commit_message: str = "Publish {title}"
    catalog_message: str = "Update catalog: {title}"

    def __post_init__(self):
        """Ensure the data directory exists."""
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def drafts_path(self) -> Path:
        """File backing the local draft store."""
        return self.data_dir / f"{self.storage_key}.json"

    @property
    def has_remote(self) -> bool:
        return bool(self.remote_owner and self.remote_repo)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "AppConfig":
        """
        Create config from dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            AppConfig instance
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config_dict) - known)
        if unknown:
            raise ValidationError("unknown configuration keys", details=", ".join(unknown))

        processed = {}
        for key, value in config_dict.items():
            if key == "data_dir" and value is not None:
                processed[key] = Path(value)
            else:
                processed[key] = value

        return cls(**processed)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "AppConfig":
        """
        Create config from FOLIO_* environment variables.

        FOLIO_DATA_DIR maps to data_dir, FOLIO_REMOTE_OWNER to remote_owner
        and so on. Explicit overrides win over the environment.
        """
        environ = os.environ if environ is None else environ
        float_fields = {"request_timeout", "publish_timeout"}
        values = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            if f.name in float_fields:
                try:
                    values[f.name] = float(raw)
                except ValueError:
                    raise ValidationError(f"{ENV_PREFIX}{f.name.upper()} must be a number", details=raw)
            else:
                values[f.name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(values)

    def to_dict(self) -> dict:
        """
        Convert config to dictionary.

        Returns:
            Configuration dictionary
        """
        return {
            "data_dir": str(self.data_dir),
            "storage_key": self.storage_key,
            "catalog_path": self.catalog_path,
            "content_dir": self.content_dir,
            "remote_owner": self.remote_owner,
            "remote_repo": self.remote_repo,
            "remote_branch": self.remote_branch,
            "api_url": self.api_url,
            "catalog_url": self.catalog_url,
            "request_timeout": self.request_timeout,
            "publish_timeout": self.publish_timeout,
            "commit_message": self.commit_message,
            "catalog_message": self.catalog_message,
        }
