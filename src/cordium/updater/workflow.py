from __future__ import annotations

import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable

from PySide6.QtCore import QObject, QThread, QTimer, Signal, Slot

from ..context import AppContext
from ..errors import HttpError, InstallError, NetworkError, PermissionDenied, UpdateError
from ..logging_utils import get_logger
from .downloads import DownloadRecord, DownloadRequest, DownloadStatus
from .releases import PendingUpdate, ReleaseInfo, fetch_latest_release, find_package_asset
from .versioning import is_newer

_LOGGER = get_logger(__name__)

ReleaseFetcher = Callable[[str, float], ReleaseInfo]


class UpdateState(str, Enum):
    IDLE = "idle"
    CHECKING = "checking"
    UP_TO_DATE = "up_to_date"
    UPDATE_AVAILABLE = "update_available"
    NO_PACKAGE = "no_package"
    CHECK_FAILED = "check_failed"
    DOWNLOADING = "downloading"
    DOWNLOAD_FAILED = "download_failed"
    DOWNLOAD_COMPLETE = "download_complete"
    PERMISSION_PENDING = "permission_pending"
    PERMISSION_DENIED = "permission_denied"
    INSTALL_LAUNCHED = "install_launched"
    INSTALL_FAILED = "install_failed"


_BUSY_NOTICES = {
    UpdateState.CHECKING: "An update check is already in progress.",
    UpdateState.DOWNLOADING: "The update is already downloading.",
    UpdateState.DOWNLOAD_COMPLETE: "The update is already being installed.",
    UpdateState.PERMISSION_PENDING: "Waiting for install permission.",
}


class CompletionLatch:
    """Single-assignment slot shared by the racing completion paths."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._winner: str | None = None

    def try_resolve(self, source: str) -> bool:
        with self._lock:
            if self._winner is not None:
                return False
            self._winner = source
            return True

    @property
    def winner(self) -> str | None:
        return self._winner


class _ReleaseCheckWorker(QObject):
    finished = Signal(object)
    failed = Signal(object)

    def __init__(self, fetcher: ReleaseFetcher, url: str, timeout: float) -> None:
        super().__init__()
        self.fetcher = fetcher
        self.url = url
        self.timeout = timeout

    def run(self) -> None:
        try:
            release = self.fetcher(self.url, self.timeout)
        except UpdateError as exc:
            self.failed.emit(exc)
            return
        except Exception as exc:  # noqa: BLE001
            self.failed.emit(NetworkError(str(exc)))
            return
        self.finished.emit(release)


class UpdateWorkflow(QObject):
    """Check, download and install cycle behind the "check for updates" row.

    The first trigger checks the release endpoint. When a newer package is
    found its version and URL are kept, and the next trigger downloads it
    instead of checking again. Download completion is detected both by the
    download service's ``download_complete`` signal and by polling its
    status; whichever path notices first wins and cancels the other.
    """

    state_changed = Signal(str)
    status_published = Signal(int, str)

    def __init__(
        self,
        setting_id: str,
        context: AppContext,
        parent: QObject | None = None,
        fetcher: ReleaseFetcher = fetch_latest_release,
    ) -> None:
        super().__init__(parent)
        self.setting_id = setting_id
        self.context = context
        self._fetcher = fetcher
        self._page = None
        self._state = UpdateState.IDLE
        self._current_version = ""
        self._pending_update: PendingUpdate | None = None
        self._last_error: UpdateError | None = None
        self._check_seq = 0
        self._active_check_id = 0
        self._check_started_at = 0.0
        self._timed_out_check_ids: set[int] = set()
        self._check_workers: dict[_ReleaseCheckWorker, tuple[QThread, int]] = {}
        self._download_id: int | None = None
        self._download_path: Path | None = None
        self._latch: CompletionLatch | None = None
        self._broadcast_connected = False
        self._pending_install_path: Path | None = None
        self._status_revision = 0
        self._last_status = ""
        self._poll_timer = QTimer(self)
        self._poll_timer.setInterval(int(context.updater.poll_interval_ms))
        self._poll_timer.timeout.connect(self._poll_download_status)

    @property
    def state(self) -> UpdateState:
        return self._state

    @property
    def pending_update(self) -> PendingUpdate | None:
        return self._pending_update

    @property
    def last_error(self) -> UpdateError | None:
        return self._last_error

    @property
    def download_id(self) -> int | None:
        return self._download_id

    @property
    def status_revision(self) -> int:
        return self._status_revision

    @property
    def last_status(self) -> str:
        return self._last_status

    @property
    def completion_winner(self) -> str | None:
        return self._latch.winner if self._latch is not None else None

    def is_polling(self) -> bool:
        return self._poll_timer.isActive()

    def is_listening(self) -> bool:
        return self._broadcast_connected

    def attach(self, page) -> None:
        self._page = page

    def trigger(self, current_version: str) -> None:
        notice = _BUSY_NOTICES.get(self._state)
        if notice is not None:
            _LOGGER.info("Update trigger ignored in state=%s", self._state.value)
            self._notify(notice)
            return
        if self._state is UpdateState.UPDATE_AVAILABLE and self._pending_update is not None:
            self._start_download(self._pending_update)
            return
        if not current_version:
            self._notify("Error getting version")
            return
        self._current_version = current_version
        self._start_check()

    def shutdown(self) -> None:
        self._stop_completion_tracking()
        self._active_check_id = 0
        for thread, _check_id in list(self._check_workers.values()):
            if thread.isRunning():
                thread.requestInterruption()
                thread.quit()
        self._page = None
        _LOGGER.debug("Update workflow shut down in state=%s", self._state.value)

    # -- publishing ---------------------------------------------------------

    def _publish(self, state: UpdateState, status: str, toast: str | None = None, long: bool = False) -> None:
        self._state = state
        self._status_revision += 1
        self._last_status = status
        _LOGGER.info("Update state=%s rev=%d status=%s", state.value, self._status_revision, status)
        if self._page is not None:
            self._page.update_item_subtitle(self.setting_id, status)
        if toast:
            self._notify(toast, long=long)
        self.state_changed.emit(state.value)
        self.status_published.emit(self._status_revision, status)

    def _notify(self, text: str, long: bool = False) -> None:
        if self._page is not None:
            self._page.notify(text, long=long)

    def _fail(self, state: UpdateState, status: str, error: UpdateError, toast: str, long: bool = False) -> None:
        self._last_error = error
        self._publish(state, status, toast=toast, long=long)

    # -- check --------------------------------------------------------------

    def _start_check(self) -> None:
        self._check_seq += 1
        check_id = self._check_seq
        self._active_check_id = check_id
        self._last_error = None
        self._check_started_at = time.monotonic()
        self._publish(UpdateState.CHECKING, "Checking for updates...")
        self._launch_check_worker(check_id)
        watchdog_ms = int(self.context.updater.check_watchdog_sec) * 1000
        QTimer.singleShot(watchdog_ms, lambda cid=check_id: self._on_check_watchdog_timeout(cid))

    def _launch_check_worker(self, check_id: int) -> None:
        config = self.context.updater
        worker = _ReleaseCheckWorker(self._fetcher, config.release_url, config.check_timeout_sec)
        thread = QThread(self)
        self._check_workers[worker] = (thread, check_id)
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(self._on_check_worker_finished)
        worker.failed.connect(self._on_check_worker_failed)
        worker.finished.connect(thread.quit)
        worker.failed.connect(thread.quit)
        thread.finished.connect(worker.deleteLater)
        thread.finished.connect(self._on_thread_finished)
        _LOGGER.info("Starting update check id=%d url=%s", check_id, config.release_url)
        thread.start()

    @Slot(object)
    def _on_check_worker_finished(self, release: object) -> None:
        meta = self._check_workers.get(self.sender())
        if meta is not None:
            self._on_checked(meta[1], release)

    @Slot(object)
    def _on_check_worker_failed(self, error: object) -> None:
        meta = self._check_workers.get(self.sender())
        if meta is not None:
            self._on_check_failed(meta[1], error)

    @Slot()
    def _on_thread_finished(self) -> None:
        thread = self.sender()
        if not isinstance(thread, QThread):
            return
        for worker, (worker_thread, _check_id) in list(self._check_workers.items()):
            if worker_thread is thread:
                self._check_workers.pop(worker, None)
        thread.deleteLater()

    def _accept_check_result(self, check_id: int, outcome: str) -> bool:
        if check_id in self._timed_out_check_ids:
            self._timed_out_check_ids.discard(check_id)
            _LOGGER.info("Ignoring late %s result for timed-out check id=%d", outcome, check_id)
            return False
        if check_id != self._active_check_id or self._state is not UpdateState.CHECKING:
            _LOGGER.info("Ignoring stale %s result id=%d active=%d", outcome, check_id, self._active_check_id)
            return False
        elapsed = max(0.0, time.monotonic() - self._check_started_at)
        _LOGGER.info("Update check id=%d %s after %.2fs", check_id, outcome, elapsed)
        return True

    def _on_checked(self, check_id: int, release: object) -> None:
        if not self._accept_check_result(check_id, "successful"):
            return
        if not isinstance(release, ReleaseInfo):
            error = NetworkError(f"Unexpected release metadata type: {type(release).__name__}")
            self._fail(UpdateState.CHECK_FAILED, "Error checking for updates", error, f"Error: {error}")
            return
        if not is_newer(self._current_version, release.version):
            _LOGGER.info("No update: current=%s latest=%s", self._current_version, release.version)
            self._publish(UpdateState.UP_TO_DATE, "You're on the latest version", toast="You're on the latest version!")
            return
        extension = self.context.updater.package_extension
        asset = find_package_asset(release.assets, extension)
        if asset is None:
            self._publish(
                UpdateState.NO_PACKAGE,
                f"No {extension} package found in release",
                toast=f"No {extension} package found in the release",
            )
            return
        self._pending_update = PendingUpdate(version=release.version, download_url=asset.download_url)
        self._publish(
            UpdateState.UPDATE_AVAILABLE,
            f"New version available: {release.version}. Tap again to update",
            toast=f"New version available: {release.version}",
        )

    def _on_check_failed(self, check_id: int, error: object) -> None:
        if not self._accept_check_result(check_id, "failed"):
            return
        if not isinstance(error, UpdateError):
            error = NetworkError(str(error))
        if isinstance(error, HttpError):
            self._fail(
                UpdateState.CHECK_FAILED,
                f"Failed to check for updates (HTTP {error.status})",
                error,
                f"Failed to check for updates. Server returned: HTTP {error.status}",
                long=True,
            )
            return
        self._fail(UpdateState.CHECK_FAILED, "Error checking for updates", error, f"Error: {error}")

    def _on_check_watchdog_timeout(self, check_id: int) -> None:
        if self._state is not UpdateState.CHECKING or check_id != self._active_check_id:
            return
        self._timed_out_check_ids.add(check_id)
        for thread, worker_check_id in list(self._check_workers.values()):
            if worker_check_id == check_id and thread.isRunning():
                thread.requestInterruption()
                thread.quit()
        seconds = self.context.updater.check_watchdog_sec
        error = NetworkError(f"Update check did not finish within {seconds}s.")
        self._fail(UpdateState.CHECK_FAILED, "Update check timed out", error, str(error))

    # -- download -----------------------------------------------------------

    def _start_download(self, update: PendingUpdate) -> None:
        self._pending_update = None
        self._last_error = None
        manager = self.context.download_manager
        destination = Path(self.context.downloads_dir) / self.context.updater.package_file_name(update.version)
        request = DownloadRequest(
            url=update.download_url,
            destination=destination,
            title="Cordium Update",
            description=f"Downloading version {update.version}",
        )
        self._latch = CompletionLatch()
        # Subscribe before enqueueing so an early completion is not missed.
        manager.download_complete.connect(self._on_download_broadcast)
        self._broadcast_connected = True
        try:
            self._download_id = manager.enqueue(request)
        except (OSError, RuntimeError) as exc:
            self._stop_completion_tracking()
            error = NetworkError(str(exc))
            self._fail(UpdateState.DOWNLOAD_FAILED, "Download failed", error, f"Download failed: {exc}", long=True)
            return
        self._download_path = destination
        self._publish(UpdateState.DOWNLOADING, "Downloading update...", toast="Downloading update...")
        self._poll_timer.start()

    @Slot(int)
    def _on_download_broadcast(self, download_id: int) -> None:
        if download_id != self._download_id:
            return
        self._resolve_download("event", self.context.download_manager.query(download_id))

    @Slot()
    def _poll_download_status(self) -> None:
        if self._download_id is None:
            self._poll_timer.stop()
            return
        record = self.context.download_manager.query(self._download_id)
        if record is not None and record.status not in (DownloadStatus.SUCCESSFUL, DownloadStatus.FAILED):
            return
        self._resolve_download("poll", record)

    def _resolve_download(self, source: str, record: DownloadRecord | None) -> None:
        latch = self._latch
        if latch is None or not latch.try_resolve(source):
            _LOGGER.debug("Ignoring %s completion for download %s", source, self._download_id)
            return
        self._stop_completion_tracking()
        _LOGGER.info("Download %s resolved by %s", self._download_id, source)
        if record is not None and record.status is DownloadStatus.SUCCESSFUL:
            self._publish(
                UpdateState.DOWNLOAD_COMPLETE,
                "Download complete",
                toast="Download complete, installing...",
            )
            self._install(self._download_path)
            return
        reason = record.reason if record is not None and record.reason else "download was lost"
        self._fail(UpdateState.DOWNLOAD_FAILED, "Download failed", NetworkError(reason), f"Download failed: {reason}")

    def _stop_completion_tracking(self) -> None:
        self._poll_timer.stop()
        if self._broadcast_connected:
            try:
                self.context.download_manager.download_complete.disconnect(self._on_download_broadcast)
            except (RuntimeError, TypeError):
                _LOGGER.debug("Download signal was already disconnected")
            self._broadcast_connected = False

    # -- install ------------------------------------------------------------

    def _install(self, path: Path | None) -> None:
        permission = self.context.install_permission
        if permission.is_required() and not permission.is_granted():
            if self._page is None:
                error = InstallError("No page is attached to ask for install permission.")
                self._fail(UpdateState.INSTALL_FAILED, "Installation failed", error, str(error))
                return
            self._pending_install_path = path
            self._publish(UpdateState.PERMISSION_PENDING, "Waiting for install permission...")
            self._page.request_install_permission(self._on_install_permission_result)
            return
        self._launch_installer(path)

    def _on_install_permission_result(self, granted: bool) -> None:
        if self._state is not UpdateState.PERMISSION_PENDING:
            return
        path = self._pending_install_path
        self._pending_install_path = None
        if not granted:
            error = PermissionDenied("Install permission denied")
            self._fail(UpdateState.PERMISSION_DENIED, str(error), error, str(error))
            return
        try:
            self.context.install_permission.grant()
        except OSError as exc:
            error = InstallError(f"Could not save install permission: {exc}")
            self._fail(UpdateState.INSTALL_FAILED, "Installation failed", error, f"Installation failed: {error}", long=True)
            return
        self._launch_installer(path)

    def _launch_installer(self, path: Path | None) -> None:
        try:
            if path is None:
                raise InstallError("No downloaded package to install.")
            self.context.installer.launch(path)
        except InstallError as exc:
            self._fail(UpdateState.INSTALL_FAILED, "Installation failed", exc, f"Installation failed: {exc}", long=True)
            return
        self._publish(UpdateState.INSTALL_LAUNCHED, "Installer launched")
