# tests/conftest.py
import pytest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

# config.py no longer validates at import time, so the Settings class can be
# imported without any environment variables.
from amplify.config import Settings, get_settings
from amplify.exceptions import PermanentError
from amplify.pipeline import FolderConfig
from amplify.storage.base import StorageClient
from amplify.storage.dto import FileRecord


class FakeStorage(StorageClient):
    """
    In-memory stand-in for Google Drive. Keeps real parent lists so tests can
    assert where a file ended up.
    """

    def __init__(self):
        self.files = {}
        self.contents = {}
        self.updates = []
        self.created = []
        self.watches = []
        self.errors = {}  # method name -> exception raised on the next call

    def add_file(self, file_id, name, parents, content=b"", created_time=None, modified_time=None):
        self.files[file_id] = FileRecord(
            id=file_id,
            name=name,
            parents=list(parents),
            created_time=created_time,
            modified_time=modified_time,
        )
        self.contents[file_id] = content
        return self.files[file_id]

    def parents_of(self, file_id):
        return list(self.files[file_id].parents)

    def _maybe_fail(self, method):
        error = self.errors.pop(method, None)
        if error is not None:
            raise error

    def get_file(self, file_id):
        self._maybe_fail("get_file")
        if file_id not in self.files:
            raise PermanentError(f"Unable to retrieve file {file_id}: not found")
        return self.files[file_id].model_copy(deep=True)

    def list_files(self, folder_id):
        self._maybe_fail("list_files")
        return [r.model_copy(deep=True) for r in self.files.values() if folder_id in r.parents]

    def update_parents(self, file_id, add_parent, remove_parent):
        self._maybe_fail("update_parents")
        self.updates.append((file_id, add_parent, remove_parent))
        parents = self.files[file_id].parents
        parents.remove(remove_parent)
        parents.append(add_parent)

    def download_file(self, file_id):
        self._maybe_fail("download_file")
        return self.contents[file_id]

    def create_file(self, name, folder_id, content):
        self._maybe_fail("create_file")
        new_id = f"copy-{len(self.created) + 1}"
        self.created.append((name, folder_id, content))
        self.add_file(new_id, name, [folder_id], content=content)
        return new_id

    def watch_folder(self, folder_id, channel_id, address, token):
        self._maybe_fail("watch_folder")
        self.watches.append((folder_id, channel_id, address, token))
        return {"resourceId": "res-1", "expiration": "0"}

    def verify_folder_exists(self, folder_id):
        return folder_id


@pytest.fixture
def mock_settings():
    """
    Provides a mock of the application settings for testing.
    This avoids the need for environment variables during tests.
    """
    settings = MagicMock(spec=Settings)
    settings.SERVICE_ROLE = "mover"
    settings.LOG_LEVEL = "INFO"
    settings.PORT = 8080
    settings.GOOGLE_APPLICATION_CREDENTIALS = None
    settings.GDRIVE_TOKEN_JSON = None
    settings.DRIVE_ID = None
    settings.INPUT_FOLDER_ID = "I"
    settings.TEMP_FOLDER_ID = "S"
    settings.OUTPUT_FOLDER_ID = "O"
    settings.OUTPUT_MODE = "move"
    settings.PROCESSING_DELAY_SECONDS = 0
    settings.DRIVE_FOLDER_ID = "I"
    settings.WATCH_MODE = "push"
    settings.CHANNEL_ID = "channel-1"
    settings.WEBHOOK_URL = "https://mover.example.com/"
    settings.WATCH_CALLBACK_URL = None
    settings.RELAY_MODE = "webhook"
    settings.PUBSUB_TOPIC = None
    settings.GCP_PROJECT_ID = None
    settings.POLL_INTERVAL_SECONDS = 1
    settings.RECENCY_WINDOW_SECONDS = 5
    settings.BASE_DIR = Path("/tmp")
    settings.LOG_FILE = Path("/tmp/app.log")
    return settings


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def folders():
    return FolderConfig(input="I", staging="S", output="O")


@pytest.fixture
def now():
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def patch_settings_class(monkeypatch, mock_settings):
    """
    This autouse fixture automatically replaces the `Settings` class constructor.
    Any part of the app code that calls `Settings()` during a test run will
    receive the `mock_settings` instance instead of a real settings object.
    """
    # The cache on get_settings may hold a real instance from an earlier call.
    get_settings.cache_clear()
    monkeypatch.setattr("amplify.config.Settings", lambda *args, **kwargs: mock_settings)
