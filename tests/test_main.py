# tests/test_main.py
import logging
from unittest.mock import patch, MagicMock

import pytest
from pydantic import ValidationError

from amplify.main import (
    build_mover,
    build_relay,
    build_watcher,
    initialize_storage_client,
    main,
    setup_logging,
)
from amplify.pipeline import OutputMode
from amplify.relay import PubSubRelay, WebhookRelay


@patch("amplify.main.GoogleDriveClient")
@patch("amplify.main.load_credentials")
def test_initialize_storage_client_success(mock_load_credentials, MockClient, mock_settings):
    mock_settings.GOOGLE_APPLICATION_CREDENTIALS = "/secrets/sa.json"
    mock_settings.DRIVE_ID = "drive-1"

    storage_client = initialize_storage_client(mock_settings)

    assert storage_client == MockClient.return_value
    mock_load_credentials.assert_called_once_with(
        credentials_file="/secrets/sa.json", token_json=None
    )
    MockClient.assert_called_once_with(mock_load_credentials.return_value, drive_id="drive-1")


@patch("amplify.main.load_credentials", side_effect=Exception("no credentials"))
@patch("amplify.main.logging")
def test_initialize_storage_client_failure_returns_none(MockLogging, mock_load_credentials, mock_settings):
    assert initialize_storage_client(mock_settings) is None
    MockLogging.error.assert_called_once_with(
        "Failed to initialize Google Drive client. Error: no credentials", exc_info=True
    )


def test_build_mover_uses_configured_folders(mock_settings, fake_storage):
    mock_settings.OUTPUT_MODE = "copy"

    mover = build_mover(mock_settings, fake_storage)

    assert (mover.folders.input, mover.folders.staging, mover.folders.output) == ("I", "S", "O")
    assert mover.output_mode == OutputMode.COPY
    assert mover.storage_client is fake_storage


def test_build_relay_webhook(mock_settings):
    relay = build_relay(mock_settings)

    assert isinstance(relay, WebhookRelay)
    assert relay.url == "https://mover.example.com/"


@patch("amplify.relay.pubsub_v1.PublisherClient")
def test_build_relay_pubsub(MockPublisher, mock_settings):
    mock_settings.RELAY_MODE = "pubsub"
    mock_settings.PUBSUB_TOPIC = "files"
    mock_settings.GCP_PROJECT_ID = "my-project"

    relay = build_relay(mock_settings)

    assert isinstance(relay, PubSubRelay)
    MockPublisher.return_value.topic_path.assert_called_once_with("my-project", "files")


def test_build_watcher(mock_settings, fake_storage):
    watcher = build_watcher(mock_settings, fake_storage)

    assert watcher.folder_id == "I"
    assert watcher.recency_window.total_seconds() == 5


def test_setup_logging_without_settings_logs_to_console():
    setup_logging()

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.StreamHandler)


@patch("amplify.main.initialize_storage_client")
@patch("amplify.main.setup_logging")
def test_process_command_success(mock_setup_logging, mock_init, fake_storage):
    fake_storage.add_file("F1", "report.pdf", ["I"])
    mock_init.return_value = fake_storage

    assert main(["process", "F1"]) == 0
    assert fake_storage.parents_of("F1") == ["O"]


@patch("amplify.main.initialize_storage_client")
@patch("amplify.main.setup_logging")
def test_process_command_rejection(mock_setup_logging, mock_init, fake_storage):
    fake_storage.add_file("F2", "other.pdf", ["OtherFolder"])
    mock_init.return_value = fake_storage

    assert main(["process", "F2"]) == 2


@patch("amplify.main.initialize_storage_client")
@patch("amplify.main.setup_logging")
def test_process_command_unknown_file_is_rejected(mock_setup_logging, mock_init, fake_storage):
    mock_init.return_value = fake_storage

    assert main(["process", "gone"]) == 2
    assert fake_storage.updates == []


@patch("amplify.main.initialize_storage_client", return_value=None)
@patch("amplify.main.setup_logging")
def test_process_command_without_drive_connection_exits(mock_setup_logging, mock_init):
    with pytest.raises(SystemExit) as excinfo:
        main(["process", "F1"])

    assert excinfo.value.code == 1


@patch("amplify.main.setup_logging")
@patch("amplify.main.get_settings")
def test_invalid_configuration_is_fatal(mock_get_settings, mock_setup_logging):
    mock_get_settings.side_effect = ValidationError.from_exception_data("Settings", [])

    with pytest.raises(SystemExit) as excinfo:
        main(["mover"])

    assert excinfo.value.code == 1
    mock_get_settings.assert_called_once_with("mover")


@patch("amplify.main.initialize_storage_client")
@patch("amplify.main.setup_logging")
def test_watcher_subscription_failure_is_fatal(mock_setup_logging, mock_init, fake_storage):
    fake_storage.errors["watch_folder"] = Exception("Unable to set up watch")
    mock_init.return_value = fake_storage

    with patch("amplify.main.uvicorn.run") as mock_run:
        with pytest.raises(SystemExit):
            main(["watcher"])
        mock_run.assert_not_called()


@patch("amplify.main.uvicorn.run")
@patch("amplify.main.initialize_storage_client")
@patch("amplify.main.setup_logging")
def test_watcher_push_mode_registers_then_serves(mock_setup_logging, mock_init, mock_run, fake_storage):
    mock_init.return_value = fake_storage

    main(["watcher"])

    assert fake_storage.watches == [("I", "channel-1", "https://mover.example.com/", "")]
    mock_run.assert_called_once()
    assert mock_run.call_args.kwargs["port"] == 8080


@patch("amplify.main.initialize_storage_client")
@patch("amplify.main.setup_logging")
def test_watcher_poll_run_once(mock_setup_logging, mock_init, fake_storage, mock_settings):
    mock_settings.WATCH_MODE = "poll"
    mock_init.return_value = fake_storage

    with patch("amplify.main.WebhookRelay") as MockRelay:
        main(["watcher", "--run-once"])

    assert fake_storage.watches == []
    MockRelay.return_value.send.assert_not_called()


@patch("amplify.main.uvicorn.run")
@patch("amplify.main.initialize_storage_client")
@patch("amplify.main.setup_logging")
def test_mover_verifies_folders_then_serves(mock_setup_logging, mock_init, mock_run):
    storage_client = MagicMock()
    mock_init.return_value = storage_client

    main(["mover"])

    assert storage_client.verify_folder_exists.call_count == 3
    mock_run.assert_called_once()
