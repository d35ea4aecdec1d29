import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from folio.app.config import AppConfig
from folio.app.events import EventBus
from folio.remote.memory import InMemoryContentStore
from folio.storage.json_repo import JSONDraftRepository


@pytest.fixture
def config(tmp_path):
    """Config rooted in a temporary data directory."""
    return AppConfig(
        data_dir=tmp_path / "data",
        remote_owner="octo",
        remote_repo="library",
    )


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def drafts_path(tmp_path):
    return tmp_path / "data" / "localBooks_v1.json"


@pytest.fixture
def repo(drafts_path, events):
    """Draft store writing to a temporary file."""
    return JSONDraftRepository(drafts_path, events=events)


@pytest.fixture
def memory_store():
    return InMemoryContentStore()


@pytest.fixture
def cover_bytes():
    """Small PNG-like binary blob with bytes that are not valid UTF-8."""
    return b"\x89PNG\r\n\x1a\n\x00\xff\xfe" + bytes(range(256))
