# main.py
import argparse
import logging
import sys
from typing import Optional

import uvicorn
from pydantic import ValidationError

from .config import Settings, get_settings
from .exceptions import FileUnavailableError, NotInInputFolderError, PermanentError, PipelineError
from .gdrive import GoogleDriveClient, load_credentials
from .pipeline import FolderConfig, Mover, OutputMode, SimulatedProcessor
from .relay import PubSubRelay, Relay, WebhookRelay
from .server import create_mover_app, create_watcher_app
from .storage.base import StorageClient
from .watcher import Watcher


def setup_logging(settings: Optional[Settings] = None):
    """Configures logging to file and console explicitly."""
    log_level_name = settings.LOG_LEVEL.upper() if settings else "INFO"

    # Get the root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_name)

    # Clear any existing handlers to prevent duplicate logs on re-runs or implicit configs
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Add StreamHandler (for console output)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if settings is not None:
        try:
            file_handler = logging.FileHandler(settings.LOG_FILE)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except IOError as e:
            # Log to console if file logging fails (e.g., read-only container filesystem)
            root_logger.error(f"Failed to set up file logging to {settings.LOG_FILE}: {e}")

    # Reducing "noise" from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)
    logging.getLogger("google.auth").setLevel(logging.WARNING)


def fatal(message: str):
    logging.critical(message)
    sys.exit(1)


def initialize_storage_client(settings: Settings) -> Optional[StorageClient]:
    """Initializes and returns a GoogleDriveClient, or None if that is not possible."""
    try:
        credentials = load_credentials(
            credentials_file=settings.GOOGLE_APPLICATION_CREDENTIALS,
            token_json=settings.GDRIVE_TOKEN_JSON,
        )
        return GoogleDriveClient(credentials, drive_id=settings.DRIVE_ID)
    except Exception as e:
        logging.error(
            f"Failed to initialize Google Drive client. Error: {e}", exc_info=True
        )
        return None


def build_relay(settings: Settings) -> Relay:
    if settings.RELAY_MODE == "pubsub":
        logging.info(f"Relaying notifications to Pub/Sub topic {settings.PUBSUB_TOPIC}.")
        return PubSubRelay(settings.PUBSUB_TOPIC, project_id=settings.GCP_PROJECT_ID)
    logging.info(f"Relaying notifications to webhook {settings.WEBHOOK_URL}.")
    return WebhookRelay(settings.WEBHOOK_URL)


def build_watcher(settings: Settings, storage_client: StorageClient) -> Watcher:
    return Watcher(
        storage_client,
        build_relay(settings),
        settings.DRIVE_FOLDER_ID,
        recency_window_seconds=settings.RECENCY_WINDOW_SECONDS,
    )


def build_mover(settings: Settings, storage_client: StorageClient) -> Mover:
    folders = FolderConfig(
        input=settings.INPUT_FOLDER_ID,
        staging=settings.TEMP_FOLDER_ID,
        output=settings.OUTPUT_FOLDER_ID,
    )
    logging.info(
        f"Input Folder ID: {folders.input}, Temp Folder ID: {folders.staging}, Output Folder ID: {folders.output}, Drive ID: {settings.DRIVE_ID}"
    )
    return Mover(
        storage_client,
        folders,
        processor=SimulatedProcessor(settings.PROCESSING_DELAY_SECONDS),
        output_mode=OutputMode(settings.OUTPUT_MODE),
    )


def load_settings(role: str) -> Settings:
    """Loads settings for a role; invalid or missing configuration is fatal."""
    try:
        return get_settings(role)
    except ValidationError as e:
        setup_logging()
        fatal(f"Invalid configuration for the {role}: {e}")


def connect(settings: Settings) -> StorageClient:
    storage_client = initialize_storage_client(settings)
    if storage_client is None:
        fatal("Could not establish a connection to Google Drive.")
    return storage_client


def run_watcher(args):
    settings = load_settings("watcher")
    setup_logging(settings)
    logging.info("Starting the Google Drive Watcher Service...")
    watcher = build_watcher(settings, connect(settings))

    if settings.WATCH_MODE == "poll":
        watcher.run_polling(
            settings.POLL_INTERVAL_SECONDS, max_cycles=1 if args.run_once else None
        )
        return

    try:
        watcher.register_subscription(
            settings.CHANNEL_ID,
            settings.WATCH_CALLBACK_URL or settings.WEBHOOK_URL,
            settings.PUBSUB_TOPIC or "",
        )
    except Exception as e:
        fatal(f"Unable to set up watch: {e}")
    logging.info("Watch set up successfully")

    logging.info(f"Listening on port {settings.PORT}")
    uvicorn.run(create_watcher_app(watcher), host="0.0.0.0", port=settings.PORT)


def run_mover(args):
    settings = load_settings("mover")
    setup_logging(settings)
    storage_client = connect(settings)
    try:
        for folder_id in [settings.INPUT_FOLDER_ID, settings.TEMP_FOLDER_ID, settings.OUTPUT_FOLDER_ID]:
            storage_client.verify_folder_exists(folder_id)
    except PermanentError as e:
        fatal(f"A configured folder does not exist or is inaccessible. Error: {e}")
    mover = build_mover(settings, storage_client)

    logging.info(f"Listening on port {settings.PORT}")
    uvicorn.run(create_mover_app(mover), host="0.0.0.0", port=settings.PORT)


def run_process(args) -> int:
    settings = load_settings("mover")
    setup_logging(settings)
    mover = build_mover(settings, connect(settings))
    try:
        result = mover.run(args.file_id)
    except (NotInInputFolderError, FileUnavailableError) as e:
        logging.warning(f"Rejected: {e}")
        return 2
    except PipelineError as e:
        logging.error(
            f"Pipeline aborted before reaching {e.failed_stage.value}; file left at {e.last_state.value}. Error: {e}"
        )
        return 1
    logging.info(f"File {result.file_name} ({result.file_id}) reached {result.state.value}.")
    return 0


def run_auth(args):
    from .gdrive_auth import gdrive_authenticate

    gdrive_authenticate(args.credentials, args.token)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Move new Google Drive files through an input/temp/output folder pipeline."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    watcher_parser = subparsers.add_parser("watcher", help="Watch the monitored folder and relay new files.")
    watcher_parser.add_argument(
        "--run-once", action="store_true", help="In poll mode, scan the folder once and then exit."
    )
    watcher_parser.set_defaults(func=run_watcher)

    mover_parser = subparsers.add_parser("mover", help="Serve the mover pipeline over HTTP.")
    mover_parser.set_defaults(func=run_mover)

    process_parser = subparsers.add_parser("process", help="Run the pipeline once for a single file.")
    process_parser.add_argument("file_id", help="The Google Drive file ID.")
    process_parser.set_defaults(func=run_process)

    auth_parser = subparsers.add_parser("auth", help="Create an authorized user token for Google Drive.")
    auth_parser.add_argument("--credentials", default="credentials.json", help="OAuth client secrets file.")
    auth_parser.add_argument("--token", default="gdrive_token.json", help="Where to write the token.")
    auth_parser.set_defaults(func=run_auth)

    args = parser.parse_args(argv)
    return args.func(args) or 0


if __name__ == "__main__":
    sys.exit(main())
