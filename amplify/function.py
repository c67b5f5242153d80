"""
Cloud Function entry point for the mover, triggered by Pub/Sub messages
published by the watcher.
"""
import logging
from functools import lru_cache

import functions_framework

from .config import get_settings
from .exceptions import PermanentError
from .main import build_mover, initialize_storage_client, setup_logging
from .notifications import decode_notification
from .pipeline import Mover


@lru_cache()
def get_mover() -> Mover:
    """
    Builds the mover on the first invocation and reuses it while the instance
    stays warm.
    """
    settings = get_settings("mover")
    setup_logging(settings)
    storage_client = initialize_storage_client(settings)
    if storage_client is None:
        raise PermanentError("Could not establish a connection to Google Drive.")
    return build_mover(settings, storage_client)


@functions_framework.cloud_event
def amplify_function(cloud_event):
    """Runs the pipeline for the file named in a Pub/Sub CloudEvent."""
    logging.info(f"Event data: {cloud_event.data}")
    try:
        notification = decode_notification(cloud_event.data)
        logging.info(f"Received Pub/Sub message: {notification}")
        return get_mover().run(notification.file_id)
    except Exception as e:
        # Re-raised so the platform records the invocation as failed.
        logging.error(f"Failed to process event: {e}")
        raise
