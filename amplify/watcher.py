# watcher.py
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from .notifications import Notification
from .relay import Relay
from .storage.base import StorageClient
from .storage.dto import FileRecord


class Watcher:
    """
    Observes the monitored folder and relays every observed file to the mover.
    It only reads metadata; file locations are never changed here.
    """

    def __init__(
        self,
        storage_client: StorageClient,
        relay: Relay,
        folder_id: str,
        recency_window_seconds: float = 5.0,
    ):
        self.storage_client = storage_client
        self.relay = relay
        self.folder_id = folder_id
        self.recency_window = timedelta(seconds=recency_window_seconds)

    def register_subscription(self, channel_id: str, address: str, token: str):
        """
        Registers the push change-subscription on the monitored folder.
        Any failure propagates; the caller treats it as fatal.
        """
        logging.info(
            f"Registering watch channel '{channel_id}' on folder '{self.folder_id}' -> {address}"
        )
        return self.storage_client.watch_folder(self.folder_id, channel_id, address, token)

    def handle_change(self, notification: Notification) -> Notification:
        """
        Resolves the file name of a changed resource and relays it.
        Metadata and relay errors propagate to the caller.
        """
        logging.info(f"Received notification for resource ID: {notification.file_id}")
        record = self.storage_client.get_file(notification.file_id)
        self.relay.send(record.id, record.name)
        logging.info(f"New file identified: {record.name}")
        return Notification(file_id=record.id, file_name=record.name, source=notification.source)

    def _is_recent(self, record: FileRecord, now: datetime) -> bool:
        for stamp in (record.created_time, record.modified_time):
            if stamp is not None and now - stamp <= self.recency_window:
                return True
        return False

    def scan_once(self, now: Optional[datetime] = None) -> List[Notification]:
        """
        Lists the monitored folder and relays every file created or modified
        within the recency window. A failure for one file is logged and the
        scan carries on with the next.
        """
        now = now or datetime.now(timezone.utc)
        records = self.storage_client.list_files(self.folder_id)

        relayed = []
        for record in records:
            if not self._is_recent(record, now):
                continue
            logging.info(f"New file detected: {record.name} ({record.id})")
            try:
                self.relay.send(record.id, record.name)
            except Exception as e:
                logging.error(f"Failed to relay file {record.name} ({record.id}): {e}", exc_info=True)
                continue
            relayed.append(Notification(file_id=record.id, file_name=record.name, source="poll"))
        return relayed

    def run_polling(
        self,
        interval_seconds: float,
        max_cycles: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Scans the folder every `interval_seconds` until `max_cycles` is reached (forever if None)."""
        logging.info(
            f"Starting poll loop on folder '{self.folder_id}'. Sleep interval: {interval_seconds} seconds."
        )
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            try:
                self.scan_once()
            except Exception as e:
                # A failed scan must not stop the loop.
                logging.critical(f"An unexpected error occurred in the poll loop: {e}", exc_info=True)
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            sleep(interval_seconds)
