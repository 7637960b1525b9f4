"""
Synchronous y-websocket client provider for a canvas document.

Connects to ``<COLLAB_WS_URL>/<room>``, performs the sync handshake (step 1
out, step 2 in) within the connect timeout, forwards every local document
update to the server, and applies incoming sync/update messages when polled.
Runs entirely on the caller's thread, like the document it serves.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack

from pycrdt import (
    YMessageType,
    YSyncMessageType,
    create_sync_message,
    create_update_message,
    handle_sync_message,
)
from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect as ws_connect

from cadence.canvas.document import CanvasDocument

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class CollabSyncError(ConnectionError):
    """Raised when the sync handshake does not complete in time."""


class CollabProvider:
    def __init__(
        self,
        url: str,
        room: str,
        document: CanvasDocument,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        connect=ws_connect,
    ):
        self.url = f"{url.rstrip('/')}/{room}"
        self.room = room
        self.document = document
        self.timeout = timeout
        self._connect = connect
        self._ws = None
        self._exit_stack = None
        self._update_sub = None
        self._applying_remote = False
        self.synced = False

    # ── Connection ────────────────────────────────────────────────────────

    def connect(self) -> "CollabProvider":
        stack = ExitStack()
        try:
            self._ws = stack.enter_context(self._connect(self.url, open_timeout=self.timeout))
            self._ws.send(create_sync_message(self.document.doc))
            while not self.synced:
                try:
                    message = self._ws.recv(timeout=self.timeout)
                except TimeoutError as exc:
                    raise CollabSyncError(f"No sync reply from {self.url} within {self.timeout}s") from exc
                self._handle(message)
        except Exception:
            stack.close()
            self._ws = None
            raise
        self._exit_stack = stack
        self._update_sub = self.document.observe_updates(self._on_local_update)
        logger.info("Connected to collaboration room %s", self.room)
        return self

    def close(self) -> None:
        if self._update_sub is not None:
            self.document.unobserve_updates(self._update_sub)
            self._update_sub = None
        if self._exit_stack is not None:
            self._exit_stack.close()
            self._exit_stack = None
        self._ws = None
        self.synced = False

    @property
    def connected(self) -> bool:
        return self._ws is not None

    # ── Messages ──────────────────────────────────────────────────────────

    def poll(self, timeout: float = 0) -> int:
        """Handle every message already received (waiting up to ``timeout`` for the first)."""
        if self._ws is None:
            return 0
        handled = 0
        wait = timeout
        while True:
            try:
                message = self._ws.recv(timeout=wait)
            except TimeoutError:
                break
            except ConnectionClosed:
                logger.warning("Collaboration connection for %s closed", self.room)
                self.close()
                break
            self._handle(message)
            handled += 1
            wait = 0
        return handled

    def _handle(self, message) -> None:
        if isinstance(message, str) or not message:
            return
        if message[0] == YMessageType.SYNC:
            self._applying_remote = True
            try:
                reply = handle_sync_message(message[1:], self.document.doc)
            finally:
                self._applying_remote = False
            if reply is not None:
                self._ws.send(reply)
            if message[1] == YSyncMessageType.SYNC_STEP2:
                self.synced = True
        elif message[0] == YMessageType.AWARENESS:
            logger.debug("Awareness message ignored in %s", self.room)

    def _on_local_update(self, update: bytes) -> None:
        if self._applying_remote or self._ws is None:
            return
        try:
            self._ws.send(create_update_message(update))
        except ConnectionClosed:
            logger.warning("Dropped local update for %s: connection closed", self.room)


def provider_factory(url: str, timeout: float = DEFAULT_TIMEOUT):
    """Return ``factory(room, document)`` that yields a connected provider."""

    def _factory(room: str, document: CanvasDocument) -> CollabProvider:
        return CollabProvider(url, room, document, timeout=timeout).connect()

    return _factory
