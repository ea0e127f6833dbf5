from __future__ import annotations
import io
import re
import time
import unicodedata
import uuid
from dataclasses import dataclass, asdict
from typing import BinaryIO, Callable
from uuid import UUID

import structlog

from gregaplay.errors import UploadCancelled

log = structlog.get_logger()

MAX_BASE_NAME = 50


@dataclass(frozen=True)
class ProgressSnapshot:
    upload_id: str
    percent: float | None  # None = indeterminate (total unknown)
    bytes_sent: int
    total_bytes: int | None
    speed_bytes_per_s: float | None
    eta_seconds: float | None
    done: bool = False
    account_id: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


class UploadProgress:
    """
    One-way progress channel for a single transfer: the producer calls
    `update()`, the observer callback receives snapshots.

    A transfer stops at the next read of the wrapped stream once `cancel()`
    was called locally or `cancel_requested()` reports a request made from
    elsewhere (another API worker). A cancelled or failed upload restarts
    from zero.
    """

    def __init__(
        self,
        upload_id: str,
        total_bytes: int | None,
        observer: Callable[[ProgressSnapshot], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        min_step_percent: float = 1.0,
        account_id: str | None = None,
        cancel_requested: Callable[[], bool] | None = None,
    ):
        self.upload_id = upload_id
        self.account_id = account_id
        self.total_bytes = total_bytes if total_bytes and total_bytes > 0 else None
        self.bytes_sent = 0
        self.cancelled = False
        self._observer = observer
        self._cancel_requested = cancel_requested
        self._clock = clock
        self._started = clock()
        self._min_step = min_step_percent
        self._last_pushed: float | None = None

    def snapshot(self, done: bool = False) -> ProgressSnapshot:
        elapsed = max(self._clock() - self._started, 1e-6)
        speed = self.bytes_sent / elapsed if self.bytes_sent else None
        percent = None
        eta = None
        if self.total_bytes:
            percent = round(min(100.0, 100.0 * self.bytes_sent / self.total_bytes), 1)
            if speed:
                eta = round(max(self.total_bytes - self.bytes_sent, 0) / speed, 1)
        return ProgressSnapshot(
            upload_id=self.upload_id,
            percent=percent,
            bytes_sent=self.bytes_sent,
            total_bytes=self.total_bytes,
            speed_bytes_per_s=round(speed, 1) if speed else None,
            eta_seconds=eta,
            done=done,
            account_id=self.account_id,
        )

    def publish(self) -> ProgressSnapshot:
        """Push the current state as is, e.g. before the transfer starts."""
        snap = self.snapshot()
        self._push(snap)
        return snap

    def start(self, total_bytes: int | None) -> None:
        """Begin the transfer proper once its size is known."""
        self.total_bytes = total_bytes if total_bytes and total_bytes > 0 else None
        self.bytes_sent = 0
        self._started = self._clock()
        self._last_pushed = None

    def update(self, n: int) -> None:
        if self.cancelled:
            raise UploadCancelled(self.upload_id)
        self.bytes_sent += n
        snap = self.snapshot()
        # Throttle pushes; indeterminate transfers push every time
        if snap.percent is not None and self._last_pushed is not None and snap.percent - self._last_pushed < self._min_step:
            return
        self._last_pushed = snap.percent
        self._push(snap)

    def finish(self) -> ProgressSnapshot:
        snap = self.snapshot(done=True)
        if self.total_bytes:
            snap = ProgressSnapshot(**{**snap.as_dict(), "percent": 100.0, "eta_seconds": 0.0})
        self._push(snap)
        return snap

    def cancel(self) -> None:
        self.cancelled = True

    def is_cancelled(self) -> bool:
        if not self.cancelled and self._cancel_requested is not None and self._cancel_requested():
            self.cancelled = True
        return self.cancelled

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled():
            raise UploadCancelled(self.upload_id)

    def _push(self, snap: ProgressSnapshot) -> None:
        if self._observer is not None:
            self._observer(snap)


class ProgressReader(io.RawIOBase):
    """File wrapper that reports every read to an UploadProgress."""

    def __init__(self, raw: BinaryIO, progress: UploadProgress):
        self._raw = raw
        self._progress = progress

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        self._progress.raise_if_cancelled()
        chunk = self._raw.read(size)
        if chunk:
            self._progress.update(len(chunk))
        return chunk

    def readinto(self, b) -> int:
        chunk = self.read(len(b))
        n = len(chunk)
        b[:n] = chunk
        return n


def sanitize_file_name(original_name: str | None) -> str:
    """
    Accent-free, dash-separated base name (max 50 chars) plus the original extension.

        >>> sanitize_file_name("Anniversaire de Léa !.MOV")
        'Anniversaire-de-Lea.MOV'
    """
    if not original_name or not isinstance(original_name, str):
        return "video.mp4"
    base, dot, ext = original_name.rpartition(".")
    if not dot:
        base, ext = original_name, "mp4"
    ext = re.sub(r"[^a-zA-Z0-9]", "", ext) or "mp4"
    ascii_base = unicodedata.normalize("NFD", base).encode("ascii", "ignore").decode("ascii")
    safe = re.sub(r"[^a-zA-Z0-9]+", "-", ascii_base).strip("-")[:MAX_BASE_NAME].strip("-") or "video"
    return f"{safe}.{ext}"


def clip_storage_key(event_id: UUID, file_name: str | None, now_ms: int | None = None, token: str | None = None) -> str:
    # The token keeps same-millisecond uploads of the same file name apart
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    token = token or uuid.uuid4().hex[:8]
    return f"events/{event_id}/{now_ms}-{token}-{sanitize_file_name(file_name)}"


def store_clip(
    storage,
    *,
    event_id: UUID,
    account_id: UUID,
    file: BinaryIO,
    size: int,
    content_type: str,
    file_name: str | None,
    progress: UploadProgress,
) -> str:
    """Stream the clip to object storage. Returns the storage key."""
    key = clip_storage_key(event_id, file_name)
    file.seek(0)
    reader = ProgressReader(file, progress)
    try:
        storage.put_stream(key, reader, size, content_type)
    except UploadCancelled:
        log.info("upload_cancelled", upload_id=progress.upload_id, event_id=str(event_id), user_id=str(account_id))
        raise
    progress.finish()
    log.info("clip_stored", key=key, size=size, event_id=str(event_id), user_id=str(account_id))
    return key
