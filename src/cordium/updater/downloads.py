from __future__ import annotations

import itertools
import socket
import threading
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from PySide6.QtCore import QObject, QThread, Signal, Slot

from ..app_settings.defaults import DEFAULT_USER_AGENT, DOWNLOAD_TIMEOUT_SEC
from ..logging_utils import get_logger

_LOGGER = get_logger(__name__)
_CHUNK_SIZE = 64 * 1024


class DownloadStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESSFUL = "successful"
    FAILED = "failed"


@dataclass(frozen=True)
class DownloadRequest:
    url: str
    destination: Path
    title: str = ""
    description: str = ""


@dataclass(frozen=True)
class DownloadRecord:
    download_id: int
    request: DownloadRequest
    status: DownloadStatus = DownloadStatus.PENDING
    bytes_downloaded: int = 0
    total_bytes: int = -1
    reason: str = ""


def partial_path_for(destination: Path) -> Path:
    return destination.with_name(destination.name + ".part")


class _DownloadWorker(QObject):
    finished = Signal()

    def __init__(self, manager: "DownloadManager", download_id: int, request: DownloadRequest, timeout: float) -> None:
        super().__init__()
        self.manager = manager
        self.download_id = download_id
        self.request = request
        self.timeout = timeout

    def run(self) -> None:
        destination = Path(self.request.destination)
        partial = partial_path_for(destination)
        self.manager._update_record(self.download_id, status=DownloadStatus.RUNNING)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            offset = partial.stat().st_size if partial.exists() else 0
            headers = {"User-Agent": DEFAULT_USER_AGENT}
            if offset:
                headers["Range"] = f"bytes={offset}-"
            _LOGGER.debug("Download %d opening %s (resume offset=%d)", self.download_id, self.request.url, offset)
            with urlopen(Request(self.request.url, headers=headers), timeout=self.timeout) as response:  # noqa: S310
                resumed = offset > 0 and getattr(response, "status", None) == 206
                if not resumed:
                    offset = 0
                length = response.headers.get("Content-Length") if response.headers else None
                total = offset + int(length) if length and length.isdigit() else -1
                written = offset
                self.manager._update_record(self.download_id, bytes_downloaded=written, total_bytes=total)
                with open(partial, "ab" if resumed else "wb") as handle:
                    while True:
                        chunk = response.read(_CHUNK_SIZE)
                        if not chunk:
                            break
                        handle.write(chunk)
                        written += len(chunk)
                        self.manager._update_record(self.download_id, bytes_downloaded=written)
            partial.replace(destination)
        except HTTPError as exc:
            self._fail(f"HTTP {exc.code}")
            return
        except (TimeoutError, socket.timeout):
            self._fail(f"Network timeout while downloading update (>{self.timeout}s).")
            return
        except URLError as exc:
            self._fail(str(exc.reason or exc))
            return
        except OSError as exc:
            self._fail(str(exc))
            return
        except Exception as exc:  # noqa: BLE001
            self._fail(f"{type(exc).__name__}: {exc}")
            return
        _LOGGER.info("Download %d finished: %s", self.download_id, destination)
        self.manager._update_record(self.download_id, status=DownloadStatus.SUCCESSFUL)
        self.finished.emit()

    def _fail(self, reason: str) -> None:
        _LOGGER.warning("Download %d failed: %s", self.download_id, reason)
        self.manager._update_record(self.download_id, status=DownloadStatus.FAILED, reason=reason)
        self.finished.emit()


class DownloadManager(QObject):
    """Runs downloads on worker threads and reports their state.

    Status can be read at any time with :meth:`query`; in addition
    ``download_complete`` is emitted on the owning thread with the download id
    once a download ends, whether it succeeded or failed.
    """

    download_complete = Signal(int)

    def __init__(self, parent: QObject | None = None, timeout: float = DOWNLOAD_TIMEOUT_SEC) -> None:
        super().__init__(parent)
        self.timeout = timeout
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._records: dict[int, DownloadRecord] = {}
        self._threads: dict[_DownloadWorker, QThread] = {}

    def enqueue(self, request: DownloadRequest) -> int:
        download_id = self._register(request)
        worker = _DownloadWorker(self, download_id, request, self.timeout)
        thread = QThread(self)
        self._threads[worker] = thread
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(self._on_worker_finished)
        worker.finished.connect(thread.quit)
        thread.finished.connect(worker.deleteLater)
        thread.finished.connect(self._on_thread_finished)
        _LOGGER.info("Download %d queued: %s -> %s", download_id, request.url, request.destination)
        thread.start()
        return download_id

    def query(self, download_id: int) -> DownloadRecord | None:
        with self._lock:
            return self._records.get(download_id)

    def remove(self, download_id: int) -> None:
        with self._lock:
            self._records.pop(download_id, None)

    def shutdown(self) -> None:
        for thread in list(self._threads.values()):
            if thread.isRunning():
                thread.requestInterruption()
                thread.quit()

    def _register(self, request: DownloadRequest) -> int:
        download_id = next(self._ids)
        with self._lock:
            self._records[download_id] = DownloadRecord(download_id=download_id, request=request)
        return download_id

    def _update_record(self, download_id: int, **changes) -> None:
        with self._lock:
            record = self._records.get(download_id)
            if record is not None:
                self._records[download_id] = replace(record, **changes)

    @Slot()
    def _on_worker_finished(self) -> None:
        worker = self.sender()
        if not isinstance(worker, _DownloadWorker):
            return
        self.download_complete.emit(worker.download_id)

    @Slot()
    def _on_thread_finished(self) -> None:
        thread = self.sender()
        if not isinstance(thread, QThread):
            return
        for worker, worker_thread in list(self._threads.items()):
            if worker_thread is thread:
                self._threads.pop(worker, None)
        thread.deleteLater()
