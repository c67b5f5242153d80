"""
Decoding of the notification payloads the services receive.

Several payload shapes identify the same thing, a changed file. Each shape has
its own adapter and every adapter returns the same `Notification`:

- RawJSON: ``{"kind", "id", "resourceId"}`` from a Drive channel,
  ``{"fileName", "resourceId"}`` relayed by the watcher, or
  ``{"data": "<file id>"}``.
- Base64Envelope: ``{"data": "<base64 of a RawJSON object>"}``.
- BrokerEnvelope: a Pub/Sub push body,
  ``{"message": {"data": "<base64>", ...}, "subscription": ...}``.
- ChannelHeaders: a Drive push with an empty body and ``X-Goog-*`` headers.
"""
import base64
import binascii
import json
import logging
from typing import Mapping, Optional

from pydantic import BaseModel

from .exceptions import NotificationError

# Drive sends this once when a channel is created; it names no file.
SYNC_STATE = "sync"


class Notification(BaseModel):
    file_id: str
    file_name: Optional[str] = None
    source: str


def relay_payload(file_id: str, file_name: Optional[str]) -> dict:
    """The body the watcher relays to the mover."""
    return {"fileName": file_name, "resourceId": file_id}


def _from_object(obj: dict, source: str) -> Notification:
    file_id = obj.get("resourceId") or obj.get("fileId") or obj.get("id")
    if not file_id or not isinstance(file_id, str):
        raise NotificationError(f"No file identifier in {source} payload: {obj}")
    return Notification(file_id=file_id, file_name=obj.get("fileName"), source=source)


def _decode_base64_object(data: str) -> Optional[dict]:
    """Returns the JSON object inside `data`, or None if `data` is not one."""
    try:
        decoded = base64.b64decode(data, validate=True)
        obj = json.loads(decoded.decode("utf-8"))
    except (binascii.Error, ValueError):
        return None
    return obj if isinstance(obj, dict) else None


class RawJSONAdapter:
    source = "raw_json"

    @staticmethod
    def matches(payload: dict) -> bool:
        if "resourceId" in payload or "fileId" in payload:
            return True
        data = payload.get("data")
        return isinstance(data, str) and _decode_base64_object(data) is None

    def decode(self, payload: dict) -> Notification:
        if "data" in payload and "resourceId" not in payload and "fileId" not in payload:
            file_id = payload["data"].strip()
            if not file_id:
                raise NotificationError("Empty file identifier in notification data")
            return Notification(file_id=file_id, source=self.source)
        return _from_object(payload, self.source)


class Base64EnvelopeAdapter:
    source = "base64_envelope"

    @staticmethod
    def matches(payload: dict) -> bool:
        data = payload.get("data")
        return isinstance(data, str) and _decode_base64_object(data) is not None

    def decode(self, payload: dict) -> Notification:
        return _from_object(_decode_base64_object(payload["data"]), self.source)


class BrokerEnvelopeAdapter:
    source = "broker_envelope"

    @staticmethod
    def matches(payload: dict) -> bool:
        return isinstance(payload.get("message"), dict)

    def decode(self, payload: dict) -> Notification:
        message = payload["message"]
        data = message.get("data")
        if not isinstance(data, str) or not data:
            raise NotificationError("Broker message carries no data")

        obj = _decode_base64_object(data)
        if obj is not None:
            return _from_object(obj, self.source)

        # The message data may be a bare base64-encoded identifier.
        try:
            file_id = base64.b64decode(data, validate=True).decode("utf-8").strip()
        except (binascii.Error, UnicodeDecodeError) as e:
            raise NotificationError(f"Failed to decode data: {e}") from e
        if not file_id:
            raise NotificationError("Broker message data is empty")
        return Notification(file_id=file_id, source=self.source)


# Order matters: the broker envelope is the most specific shape.
ADAPTERS = [BrokerEnvelopeAdapter(), Base64EnvelopeAdapter(), RawJSONAdapter()]


def decode_notification(payload) -> Notification:
    """
    Normalizes any supported JSON payload into a Notification.

    Raises:
        NotificationError: If no adapter recognizes the payload.
    """
    if not isinstance(payload, dict):
        raise NotificationError(f"Notification payload must be a JSON object, got {type(payload).__name__}")
    for adapter in ADAPTERS:
        if adapter.matches(payload):
            notification = adapter.decode(payload)
            logging.debug(f"Decoded {adapter.source} notification for file {notification.file_id}")
            return notification
    raise NotificationError(f"Unrecognized notification payload: {payload}")


def decode_channel_headers(headers: Mapping[str, str]) -> Optional[Notification]:
    """
    Builds a Notification from Drive push headers.

    Returns None for the `sync` handshake Drive sends when a channel is created.

    On a `files.watch` channel Drive sets X-Goog-Resource-ID to an opaque id
    for the watched resource, not to the id of the file that changed, so a
    `get_file` on it can fail with not found. Deployments that need file ids
    use poll mode or relay a JSON body that names the file.
    """
    state = headers.get("x-goog-resource-state")
    if state == SYNC_STATE:
        logging.info(f"Received sync message for channel {headers.get('x-goog-channel-id')}")
        return None
    resource_id = headers.get("x-goog-resource-id")
    if not resource_id:
        raise NotificationError("Channel notification carries no X-Goog-Resource-ID header")
    return Notification(file_id=resource_id, source="channel_headers")
