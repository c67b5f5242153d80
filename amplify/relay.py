# relay.py
import json
from concurrent import futures
import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests
from google.api_core import exceptions as google_exceptions
from google.cloud import pubsub_v1

from .exceptions import TransientError
from .notifications import relay_payload

PUBLISH_TIMEOUT_SECONDS = 30


class Relay(ABC):
    """Forwards an observed file to the mover. One attempt, no retry."""

    @abstractmethod
    def send(self, file_id: str, file_name: Optional[str]):
        pass


class WebhookRelay(Relay):
    """POSTs the file info as JSON to a fixed processing endpoint."""

    def __init__(self, url: str, session: Optional[requests.Session] = None):
        self.url = url
        self.session = session or requests.Session()

    def send(self, file_id: str, file_name: Optional[str]):
        try:
            response = self.session.post(self.url, json=relay_payload(file_id, file_name))
        except requests.RequestException as e:
            logging.error(f"Error sending file info to webhook: {e}")
            raise TransientError(f"Unable to send file info to webhook: {e}") from e

        if response.status_code != 200:
            logging.error(f"Non-OK HTTP status from webhook: {response.status_code}")
            raise TransientError(
                f"Non-OK HTTP status from webhook: {response.status_code} {response.text.strip()}"
            )
        logging.info(f"Relayed file {file_id} to {self.url}")


class PubSubRelay(Relay):
    """Publishes the file info as a JSON message to a Pub/Sub topic."""

    def __init__(
        self,
        topic: str,
        project_id: Optional[str] = None,
        publisher: Optional[pubsub_v1.PublisherClient] = None,
    ):
        self.publisher = publisher or pubsub_v1.PublisherClient()
        if topic.startswith("projects/"):
            self.topic_path = topic
        else:
            self.topic_path = self.publisher.topic_path(project_id, topic)

    def send(self, file_id: str, file_name: Optional[str]):
        data = json.dumps(relay_payload(file_id, file_name)).encode("utf-8")
        try:
            future = self.publisher.publish(self.topic_path, data=data)
            message_id = future.result(timeout=PUBLISH_TIMEOUT_SECONDS)
        except (google_exceptions.GoogleAPICallError, futures.TimeoutError) as e:
            logging.error(f"Failed to publish message for file {file_id}: {e}")
            raise TransientError(f"Unable to publish file info to {self.topic_path}: {e}") from e
        logging.info(f"Published file {file_id} to {self.topic_path} (message ID: {message_id})")
