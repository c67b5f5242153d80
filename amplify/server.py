# server.py
import json
import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from fastapi.concurrency import run_in_threadpool

from .exceptions import FileUnavailableError, NotificationError, NotInInputFolderError, PipelineError
from .notifications import decode_channel_headers, decode_notification
from .pipeline import Mover
from .watcher import Watcher


async def _read_json(request: Request):
    body = await request.body()
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError as e:
        raise NotificationError(f"Unable to parse request body: {e}") from e


def _add_health_check(app: FastAPI):
    @app.get("/healthz", response_class=PlainTextResponse)
    def health_check():
        logging.info("Received request at /healthz")
        return "ok"


def create_watcher_app(watcher: Watcher) -> FastAPI:
    """HTTP surface of the watcher: Drive push notifications arrive on POST /."""
    app = FastAPI(title="amplify watcher")
    app.state.watcher = watcher

    @app.post("/", response_class=PlainTextResponse)
    async def receive_notification(request: Request):
        logging.info("Received request at /")
        try:
            payload = await _read_json(request)
            if payload is None:
                notification = decode_channel_headers(request.headers)
                if notification is None:
                    return PlainTextResponse("Sync message acknowledged.")
            else:
                notification = decode_notification(payload)
        except NotificationError as e:
            logging.error(f"Error parsing notification: {e}")
            return PlainTextResponse(str(e), status_code=400)

        try:
            await run_in_threadpool(watcher.handle_change, notification)
        except Exception as e:
            logging.error(f"Error handling notification for {notification.file_id}: {e}", exc_info=True)
            return PlainTextResponse(f"Unable to relay notification: {e}", status_code=500)
        return PlainTextResponse("Notification received and processed.")

    _add_health_check(app)
    return app


def create_mover_app(mover: Mover) -> FastAPI:
    """HTTP surface of the mover: file notifications arrive on POST /."""
    app = FastAPI(title="amplify mover")
    app.state.mover = mover

    @app.post("/", response_class=PlainTextResponse)
    async def process_notification(request: Request):
        try:
            payload = await _read_json(request)
            notification = decode_notification(payload)
        except NotificationError as e:
            logging.error(f"Bad Request: {e}")
            return PlainTextResponse(f"Bad Request: {e}", status_code=400)

        logging.info(f"Received notification: {notification}")
        try:
            await run_in_threadpool(mover.run, notification.file_id)
        except NotInInputFolderError as e:
            return PlainTextResponse(str(e), status_code=409)
        except FileUnavailableError as e:
            return PlainTextResponse(str(e), status_code=404)
        except PipelineError as e:
            return PlainTextResponse(f"{e} (file left at {e.last_state.value})", status_code=500)
        return PlainTextResponse("File processed successfully")

    _add_health_check(app)
    return app
