import json
import os
import shutil
import sys
import tempfile
import threading
import time
import unittest
from dataclasses import replace
from pathlib import Path
from unittest.mock import Mock

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from PySide6.QtCore import QCoreApplication, QObject, Signal
from PySide6.QtWidgets import QApplication

from cordium.app_settings import UpdaterConfig
from cordium.context import AppContext, AppInfo
from cordium.errors import HttpError, InstallError, NetworkError, PermissionDenied, UpdateError
from cordium.settings.handlers import UpdateAppHandler
from cordium.settings.models import ActionItem
from cordium.settings.store import SettingsStore
from cordium.updater.downloads import DownloadRecord, DownloadStatus
from cordium.updater.installer import InstallPermission
from cordium.updater.releases import parse_release_payload
from cordium.updater.workflow import UpdateState, UpdateWorkflow

RELEASE_URL = "https://example.com/releases/app-release.apk"


def _release(tag: str = "v0.0.2", assets=None):
    if assets is None:
        assets = [
            {"name": "checksums.txt", "browser_download_url": "https://example.com/releases/checksums.txt"},
            {"name": "app-release.apk", "browser_download_url": RELEASE_URL},
        ]
    return parse_release_payload(json.dumps({"tag_name": tag, "assets": assets}))


class _FakeDownloadManager(QObject):
    download_complete = Signal(int)

    def __init__(self) -> None:
        super().__init__()
        self.requests = []
        self.records: dict[int, DownloadRecord] = {}
        self._next_id = 41

    def enqueue(self, request) -> int:
        self._next_id += 1
        self.requests.append(request)
        self.records[self._next_id] = DownloadRecord(self._next_id, request, DownloadStatus.RUNNING)
        return self._next_id

    def query(self, download_id: int):
        return self.records.get(download_id)

    def finish(self, download_id: int, status=DownloadStatus.SUCCESSFUL, reason: str = "") -> None:
        self.records[download_id] = replace(self.records[download_id], status=status, reason=reason)

    def shutdown(self) -> None:
        return


class _FakeInstaller:
    def __init__(self) -> None:
        self.launched: list[Path] = []
        self.error: InstallError | None = None

    def launch(self, path: Path) -> None:
        if self.error is not None:
            raise self.error
        self.launched.append(path)


class _PageStub:
    def __init__(self) -> None:
        self.subtitles: list[tuple[str, str]] = []
        self.messages: list[str] = []
        self.permission_callbacks: list = []

    def update_item_subtitle(self, item_id: str, subtitle: str) -> None:
        self.subtitles.append((item_id, subtitle))

    def notify(self, text: str, long: bool = False) -> None:
        self.messages.append(text)

    def request_install_permission(self, on_result) -> None:
        self.permission_callbacks.append(on_result)

    @property
    def last_subtitle(self) -> str:
        return self.subtitles[-1][1]


def _run_checks_inline(workflow: UpdateWorkflow) -> None:
    def _launch(check_id: int) -> None:
        config = workflow.context.updater
        try:
            release = workflow._fetcher(config.release_url, config.check_timeout_sec)
        except UpdateError as exc:
            workflow._on_check_failed(check_id, exc)
            return
        workflow._on_checked(check_id, release)

    workflow._launch_check_worker = _launch


def _pump_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        QCoreApplication.processEvents()
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class UpdateWorkflowTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.app = QApplication.instance() or QApplication([])

    def setUp(self) -> None:
        self.tmp = Path(tempfile.mkdtemp(prefix="cordium_update_"))
        self.store = SettingsStore(self.tmp, "update_prefs")
        self.manager = _FakeDownloadManager()
        self.installer = _FakeInstaller()
        self.permission = InstallPermission(self.store, required=True)
        self.context = AppContext(
            app_info=AppInfo(version_name="0.0.1", version_code=1),
            updater=UpdaterConfig(),
            download_manager=self.manager,
            install_permission=self.permission,
            installer=self.installer,
            downloads_dir=self.tmp / "downloads",
        )
        self.fetcher = Mock(return_value=_release())
        self.workflow = UpdateWorkflow("check_updates", self.context, fetcher=self.fetcher)
        _run_checks_inline(self.workflow)
        self.page = _PageStub()
        self.workflow.attach(self.page)

    def tearDown(self) -> None:
        self.workflow.shutdown()
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _start_download(self) -> int:
        self.workflow.trigger("0.0.1")
        self.workflow.trigger("0.0.1")
        self.assertEqual(self.workflow.state, UpdateState.DOWNLOADING)
        return self.workflow.download_id

    def test_two_taps_check_then_download_without_second_request(self) -> None:
        handler = UpdateAppHandler(self.context, workflow=self.workflow)
        item = ActionItem(id="check_updates", title="Check for updates")

        handler.handle(self.context, item, self.page, self.store)

        self.assertEqual(self.workflow.state, UpdateState.UPDATE_AVAILABLE)
        self.assertEqual(self.workflow.pending_update.version, "0.0.2")
        self.assertEqual(self.workflow.pending_update.download_url, RELEASE_URL)
        self.assertEqual(self.page.last_subtitle, "New version available: 0.0.2. Tap again to update")
        self.assertEqual(self.page.messages[-1], "New version available: 0.0.2")

        handler.handle(self.context, item, self.page, self.store)

        self.assertEqual(self.fetcher.call_count, 1)
        self.assertEqual(self.workflow.state, UpdateState.DOWNLOADING)
        self.assertIsNone(self.workflow.pending_update)
        self.assertEqual(len(self.manager.requests), 1)
        request = self.manager.requests[0]
        self.assertEqual(request.url, RELEASE_URL)
        self.assertEqual(request.destination, self.tmp / "downloads" / "Cordium-0.0.2.apk")
        self.assertTrue(self.workflow.is_polling())
        self.assertTrue(self.workflow.is_listening())
        self.assertEqual(self.page.last_subtitle, "Downloading update...")

    def test_check_uses_configured_url_and_timeout(self) -> None:
        self.workflow.trigger("0.0.1")
        self.fetcher.assert_called_once_with(self.context.updater.release_url, 5)

    def test_up_to_date(self) -> None:
        self.fetcher.return_value = _release("v0.0.1")
        self.workflow.trigger("0.0.1")
        self.assertEqual(self.workflow.state, UpdateState.UP_TO_DATE)
        self.assertEqual(self.page.last_subtitle, "You're on the latest version")
        self.assertIsNone(self.workflow.pending_update)

    def test_missing_package_is_distinct_outcome(self) -> None:
        self.fetcher.return_value = _release(
            assets=[{"name": "source.zip", "browser_download_url": "https://example.com/source.zip"}]
        )
        self.workflow.trigger("0.0.1")
        self.assertEqual(self.workflow.state, UpdateState.NO_PACKAGE)
        self.assertEqual(self.page.last_subtitle, "No .apk package found in release")
        self.workflow.trigger("0.0.1")
        self.assertEqual(self.fetcher.call_count, 2)

    def test_http_error_is_recoverable(self) -> None:
        self.fetcher.side_effect = HttpError(404, "Not Found")
        self.workflow.trigger("0.0.1")
        self.assertEqual(self.workflow.state, UpdateState.CHECK_FAILED)
        self.assertEqual(self.page.last_subtitle, "Failed to check for updates (HTTP 404)")
        self.assertIsInstance(self.workflow.last_error, HttpError)

        self.fetcher.side_effect = None
        self.workflow.trigger("0.0.1")
        self.assertEqual(self.workflow.state, UpdateState.UPDATE_AVAILABLE)

    def test_network_error_status(self) -> None:
        self.fetcher.side_effect = NetworkError("connection refused")
        self.workflow.trigger("0.0.1")
        self.assertEqual(self.workflow.state, UpdateState.CHECK_FAILED)
        self.assertEqual(self.page.last_subtitle, "Error checking for updates")
        self.assertEqual(self.page.messages[-1], "Error: connection refused")

    def test_trigger_while_checking_is_ignored(self) -> None:
        self.workflow._launch_check_worker = Mock()
        self.workflow.trigger("0.0.1")
        self.workflow.trigger("0.0.1")
        self.assertEqual(self.workflow._launch_check_worker.call_count, 1)
        self.assertEqual(self.page.messages[-1], "An update check is already in progress.")

    def test_late_result_after_watchdog_is_ignored(self) -> None:
        self.workflow._launch_check_worker = Mock()
        self.workflow.trigger("0.0.1")
        self.workflow._on_check_watchdog_timeout(1)
        self.assertEqual(self.workflow.state, UpdateState.CHECK_FAILED)
        self.workflow._on_checked(1, _release())
        self.assertEqual(self.workflow.state, UpdateState.CHECK_FAILED)
        self.assertIsNone(self.workflow.pending_update)

    def test_poll_wins_race_and_event_is_cancelled(self) -> None:
        self.permission.grant()
        download_id = self._start_download()
        self.manager.finish(download_id)

        self.workflow._poll_download_status()

        self.assertEqual(self.workflow.completion_winner, "poll")
        self.assertEqual(self.workflow.state, UpdateState.INSTALL_LAUNCHED)
        self.assertFalse(self.workflow.is_polling())
        self.assertFalse(self.workflow.is_listening())
        revision = self.workflow.status_revision
        messages = list(self.page.messages)

        self.manager.download_complete.emit(download_id)
        self.workflow._on_download_broadcast(download_id)

        self.assertEqual(self.installer.launched, [self.tmp / "downloads" / "Cordium-0.0.2.apk"])
        self.assertEqual(self.workflow.status_revision, revision)
        self.assertEqual(self.page.messages, messages)
        self.assertEqual(self.page.messages.count("Download complete, installing..."), 1)

    def test_event_wins_race_and_poll_is_cancelled(self) -> None:
        self.permission.grant()
        download_id = self._start_download()
        self.manager.finish(download_id)

        self.manager.download_complete.emit(download_id)

        self.assertEqual(self.workflow.completion_winner, "event")
        self.assertFalse(self.workflow.is_polling())
        self.assertFalse(self.workflow.is_listening())
        revision = self.workflow.status_revision

        self.workflow._poll_download_status()

        self.assertEqual(len(self.installer.launched), 1)
        self.assertEqual(self.workflow.status_revision, revision)

    def test_event_for_other_download_is_ignored(self) -> None:
        download_id = self._start_download()
        self.manager.download_complete.emit(download_id + 100)
        self.assertEqual(self.workflow.state, UpdateState.DOWNLOADING)
        self.assertTrue(self.workflow.is_polling())

    def test_poll_keeps_waiting_while_running(self) -> None:
        self._start_download()
        self.workflow._poll_download_status()
        self.assertEqual(self.workflow.state, UpdateState.DOWNLOADING)
        self.assertIsNone(self.workflow.completion_winner)

    def test_download_failure_then_trigger_checks_again(self) -> None:
        download_id = self._start_download()
        self.manager.finish(download_id, DownloadStatus.FAILED, "HTTP 500")
        self.workflow._poll_download_status()
        self.assertEqual(self.workflow.state, UpdateState.DOWNLOAD_FAILED)
        self.assertEqual(self.page.last_subtitle, "Download failed")
        self.assertEqual(self.page.messages[-1], "Download failed: HTTP 500")
        self.assertEqual(self.installer.launched, [])

        self.workflow.trigger("0.0.1")
        self.assertEqual(self.fetcher.call_count, 2)
        self.assertEqual(self.workflow.state, UpdateState.UPDATE_AVAILABLE)

    def test_trigger_while_downloading_is_ignored(self) -> None:
        self._start_download()
        self.workflow.trigger("0.0.1")
        self.assertEqual(len(self.manager.requests), 1)
        self.assertEqual(self.page.messages[-1], "The update is already downloading.")

    def test_permission_prompt_then_grant_installs(self) -> None:
        download_id = self._start_download()
        self.manager.finish(download_id)
        self.workflow._poll_download_status()

        self.assertEqual(self.workflow.state, UpdateState.PERMISSION_PENDING)
        self.assertEqual(len(self.page.permission_callbacks), 1)
        self.assertEqual(self.installer.launched, [])

        self.page.permission_callbacks[0](True)

        self.assertEqual(self.workflow.state, UpdateState.INSTALL_LAUNCHED)
        self.assertEqual(len(self.installer.launched), 1)
        self.assertTrue(self.permission.is_granted())

    def test_permission_denied_is_terminal(self) -> None:
        download_id = self._start_download()
        self.manager.finish(download_id)
        self.workflow._poll_download_status()

        self.page.permission_callbacks[0](False)
        self.page.permission_callbacks[0](True)

        self.assertEqual(self.workflow.state, UpdateState.PERMISSION_DENIED)
        self.assertIsInstance(self.workflow.last_error, PermissionDenied)
        self.assertEqual(self.page.messages[-1], "Install permission denied")
        self.assertEqual(self.installer.launched, [])
        self.assertFalse(self.permission.is_granted())

    def test_permission_not_required_installs_directly(self) -> None:
        self.permission.required = False
        download_id = self._start_download()
        self.manager.finish(download_id)
        self.workflow._poll_download_status()
        self.assertEqual(self.page.permission_callbacks, [])
        self.assertEqual(self.workflow.state, UpdateState.INSTALL_LAUNCHED)

    def test_installer_failure(self) -> None:
        self.permission.grant()
        self.installer.error = InstallError("no handler")
        download_id = self._start_download()
        self.manager.finish(download_id)
        self.workflow._poll_download_status()
        self.assertEqual(self.workflow.state, UpdateState.INSTALL_FAILED)
        self.assertEqual(self.page.messages[-1], "Installation failed: no handler")

    def test_shutdown_cancels_completion_tracking(self) -> None:
        download_id = self._start_download()
        self.workflow.shutdown()
        self.assertFalse(self.workflow.is_polling())
        self.assertFalse(self.workflow.is_listening())
        self.manager.finish(download_id)
        self.manager.download_complete.emit(download_id)
        self.assertEqual(self.workflow.state, UpdateState.DOWNLOADING)

    def test_status_revisions_increase(self) -> None:
        published: list[tuple[int, str]] = []
        self.workflow.status_published.connect(lambda rev, text: published.append((rev, text)))
        self.workflow.trigger("0.0.1")
        revisions = [rev for rev, _text in published]
        self.assertEqual(revisions, sorted(revisions))
        self.assertEqual(len(set(revisions)), len(revisions))
        self.assertEqual(published[0][1], "Checking for updates...")

    def test_failed_permission_save_ends_in_install_failed(self) -> None:
        download_id = self._start_download()
        self.manager.finish(download_id)
        self.workflow._poll_download_status()
        self.permission.grant = Mock(side_effect=OSError("disk full"))

        self.page.permission_callbacks[0](True)

        self.assertEqual(self.workflow.state, UpdateState.INSTALL_FAILED)
        self.assertIsInstance(self.workflow.last_error, InstallError)
        self.assertEqual(self.installer.launched, [])

        self.workflow.trigger("0.0.1")
        self.assertEqual(self.fetcher.call_count, 2)

    def test_completion_without_page_fails_install_and_stays_retriggerable(self) -> None:
        download_id = self._start_download()
        self.workflow.attach(None)
        self.manager.finish(download_id)
        self.workflow._poll_download_status()

        self.assertEqual(self.workflow.state, UpdateState.INSTALL_FAILED)
        self.assertIsInstance(self.workflow.last_error, InstallError)

        self.workflow.attach(self.page)
        self.workflow.trigger("0.0.1")
        self.assertEqual(self.fetcher.call_count, 2)
        self.assertEqual(self.workflow.state, UpdateState.UPDATE_AVAILABLE)

    def test_missing_version_reports_error(self) -> None:
        self.workflow.trigger("")
        self.assertEqual(self.fetcher.call_count, 0)
        self.assertEqual(self.page.messages[-1], "Error getting version")


class ReleaseCheckThreadTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.app = QApplication.instance() or QApplication([])

    def setUp(self) -> None:
        self.tmp = Path(tempfile.mkdtemp(prefix="cordium_check_thread_"))
        store = SettingsStore(self.tmp, "thread_prefs")
        self.context = AppContext(
            app_info=AppInfo(version_name="0.0.1", version_code=1),
            updater=UpdaterConfig(),
            download_manager=_FakeDownloadManager(),
            install_permission=InstallPermission(store),
            installer=_FakeInstaller(),
            downloads_dir=self.tmp / "downloads",
        )
        self.page = _PageStub()

    def tearDown(self) -> None:
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _workflow(self, fetcher) -> UpdateWorkflow:
        workflow = UpdateWorkflow("check_updates", self.context, fetcher=fetcher)
        workflow.attach(self.page)
        self.addCleanup(workflow.shutdown)
        return workflow

    def test_result_is_delivered_from_worker_thread(self) -> None:
        calling_threads: list[int] = []

        def _fetch(url: str, timeout: float):
            calling_threads.append(threading.get_ident())
            return _release()

        workflow = self._workflow(_fetch)
        workflow.trigger("0.0.1")
        self.assertEqual(workflow.state, UpdateState.CHECKING)

        self.assertTrue(_pump_until(lambda: workflow.state is not UpdateState.CHECKING))
        self.assertEqual(workflow.state, UpdateState.UPDATE_AVAILABLE)
        self.assertEqual(workflow.pending_update.download_url, RELEASE_URL)
        self.assertEqual(len(calling_threads), 1)
        self.assertNotEqual(calling_threads[0], threading.get_ident())
        self.assertTrue(_pump_until(lambda: not workflow._check_workers))

    def test_worker_failure_is_delivered(self) -> None:
        def _fetch(url: str, timeout: float):
            raise HttpError(503, "Service Unavailable")

        workflow = self._workflow(_fetch)
        workflow.trigger("0.0.1")

        self.assertTrue(_pump_until(lambda: workflow.state is not UpdateState.CHECKING))
        self.assertEqual(workflow.state, UpdateState.CHECK_FAILED)
        self.assertEqual(self.page.last_subtitle, "Failed to check for updates (HTTP 503)")
        self.assertTrue(_pump_until(lambda: not workflow._check_workers))


if __name__ == "__main__":
    unittest.main()
