import atexit
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from threading import Lock, Timer
from typing import Any, Dict, List, Mapping, Optional

import httpx
import pydantic

from rudder.errors import ConfigError
from rudder.schemas.options import DeliveryOptions
from rudder.version import __version__


logger = logging.getLogger(__name__)

LIBRARY_NAME = "rudder-analytics-python"
BATCH_PATH = "/v1/batch"
MAX_MESSAGE_BYTES = 32 * 1024
MAX_BATCH_BYTES = 500 * 1024


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _encode(payload: Any) -> bytes:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str).encode(
        "utf-8"
    )


class DeliveryError(Exception):
    def __init__(self, status_code: int, message: str, retryable: bool) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class DeliveryClient:
    """Buffers messages in memory and posts them to the data plane in batches.

    Event methods only enqueue. A timer flushes the queue every
    ``flush_interval`` seconds, a full batch triggers an immediate background
    flush, and ``flush()`` sends everything synchronously.
    """

    def __init__(
        self,
        secret_key: str,
        host: str,
        protocol: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        try:
            self.options = DeliveryOptions.model_validate(dict(options or {}))
        except pydantic.ValidationError as exc:
            raise ConfigError(f"delivery options are invalid: {exc}") from exc

        self.secret_key = secret_key
        self.url = f"{protocol}://{host.rstrip('/')}{BATCH_PATH}"
        self._owns_http_client = self.options.http_client is None
        self._http = self.options.http_client or httpx.Client(timeout=self.options.timeout)

        self._buffer_lock = Lock()
        self._flush_lock = Lock()
        self._queue: List[Dict[str, Any]] = []
        self._flush_timer: Optional[Timer] = None
        self._closed = False
        atexit.register(self.flush)

    def track(self, event: Mapping[str, Any]) -> bool:
        return self._enqueue("track", event)

    def identify(self, event: Mapping[str, Any]) -> bool:
        return self._enqueue("identify", event)

    def group(self, event: Mapping[str, Any]) -> bool:
        return self._enqueue("group", event)

    def page(self, event: Mapping[str, Any]) -> bool:
        return self._enqueue("page", event)

    def screen(self, event: Mapping[str, Any]) -> bool:
        return self._enqueue("screen", event)

    def alias(self, event: Mapping[str, Any]) -> bool:
        return self._enqueue("alias", event)

    @property
    def pending(self) -> int:
        with self._buffer_lock:
            return len(self._queue)

    def _build_message(self, kind: str, event: Mapping[str, Any]) -> Dict[str, Any]:
        message = dict(event)
        message["type"] = kind
        message.setdefault("messageId", str(uuid.uuid4()))
        if isinstance(message.get("timestamp"), datetime):
            message["timestamp"] = message["timestamp"].isoformat()
        message.setdefault("timestamp", _now_iso())
        context = dict(message.get("context") or {})
        context["library"] = {"name": LIBRARY_NAME, "version": __version__}
        message["context"] = context
        return message

    def _enqueue(self, kind: str, event: Mapping[str, Any]) -> bool:
        if self._closed:
            logger.warning("Dropping %s message: client is shut down", kind)
            return False

        message = self._build_message(kind, event)
        size = len(_encode(message))
        if size > MAX_MESSAGE_BYTES:
            logger.error(
                "Dropping %s message %s: %d bytes exceeds %d",
                kind,
                message["messageId"],
                size,
                MAX_MESSAGE_BYTES,
            )
            return False

        with self._buffer_lock:
            if len(self._queue) >= self.options.max_queue_size:
                logger.warning("Queue is full, dropping %s message %s", kind, message["messageId"])
                return False
            self._queue.append(message)
            self._schedule_flush_locked(immediate=len(self._queue) >= self.options.batch_size)
        return True

    def _schedule_flush_locked(self, immediate: bool = False) -> None:
        if self._flush_timer is not None:
            if not immediate:
                return
            self._flush_timer.cancel()
        delay = 0.0 if immediate else self.options.flush_interval
        timer = Timer(delay, self._flush_from_timer)
        timer.daemon = True
        self._flush_timer = timer
        timer.start()

    def _flush_from_timer(self) -> None:
        with self._flush_lock:
            pending = self._drain_queue(cancel_timer=False)
            self._write_pending(pending)

    def _drain_queue(self, cancel_timer: bool) -> List[Dict[str, Any]]:
        with self._buffer_lock:
            pending = self._queue
            self._queue = []
            timer = self._flush_timer
            self._flush_timer = None
        if cancel_timer and timer is not None:
            timer.cancel()
        return pending

    def _return_to_queue(self, messages: List[Dict[str, Any]]) -> None:
        if not messages:
            return
        with self._buffer_lock:
            room = self.options.max_queue_size - len(self._queue)
            if room < len(messages):
                logger.warning("Queue is full, dropping %d requeued messages", len(messages) - max(room, 0))
            self._queue[:0] = messages[: max(room, 0)]
            if self._queue and not self._closed:
                self._schedule_flush_locked()

    def _batches(self, messages: List[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
        batches: List[List[Dict[str, Any]]] = []
        current: List[Dict[str, Any]] = []
        current_bytes = 0
        for message in messages:
            size = len(_encode(message))
            if current and (
                len(current) >= self.options.batch_size or current_bytes + size > MAX_BATCH_BYTES
            ):
                batches.append(current)
                current, current_bytes = [], 0
            current.append(message)
            current_bytes += size
        if current:
            batches.append(current)
        return batches

    def _post_batch(self, batch: List[Dict[str, Any]]) -> None:
        body = _encode({"batch": batch, "sentAt": _now_iso()})
        try:
            response = self._http.post(
                self.url,
                content=body,
                auth=(self.secret_key, ""),
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": f"{LIBRARY_NAME}/{__version__}",
                },
                timeout=self.options.timeout,
            )
        except httpx.RequestError as exc:
            raise DeliveryError(0, f"request to {self.url} failed: {exc}", retryable=True) from exc

        if response.is_success:
            return
        status = response.status_code
        raise DeliveryError(
            status,
            f"data plane responded {status}: {response.text[:200]}",
            retryable=status == 429 or status >= 500,
        )

    def _send_with_retries(self, batch: List[Dict[str, Any]]) -> Optional[DeliveryError]:
        attempts = self.options.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                self._post_batch(batch)
                return None
            except DeliveryError as exc:
                logger.warning(
                    "Batch of %d messages failed (attempt %d/%d): %s",
                    len(batch),
                    attempt,
                    attempts,
                    exc,
                )
                if not exc.retryable or attempt == attempts:
                    return exc
                time.sleep(self.options.retry_delay * 2 ** (attempt - 1))
        return None

    def _report(self, error: DeliveryError) -> None:
        handler = self.options.error_handler
        if handler is None:
            return
        try:
            handler(error.status_code, str(error))
        except Exception:
            logger.exception("error_handler raised while reporting a delivery failure")

    def _write_pending(self, pending: List[Dict[str, Any]]) -> bool:
        if not pending:
            return True
        ok = True
        requeue: List[Dict[str, Any]] = []
        for batch in self._batches(pending):
            error = self._send_with_retries(batch)
            if error is None:
                logger.debug("Sent batch of %d messages to %s", len(batch), self.url)
                continue
            ok = False
            self._report(error)
            if error.retryable:
                logger.error("Requeueing %d messages after %s", len(batch), error)
                requeue.extend(batch)
            else:
                logger.error("Dropping %d messages after %s", len(batch), error)
        self._return_to_queue(requeue)
        return ok

    def flush(self) -> bool:
        """Send everything queued, waiting for any background send in progress."""

        with self._flush_lock:
            pending = self._drain_queue(cancel_timer=True)
            return self._write_pending(pending)

    def shutdown(self) -> None:
        self._closed = True
        self.flush()
        atexit.unregister(self.flush)
        if self._owns_http_client:
            self._http.close()
