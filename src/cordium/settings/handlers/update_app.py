from __future__ import annotations

from ...context import AppContext
from ...updater.workflow import UpdateWorkflow
from .base import SettingHandler


class UpdateAppHandler(SettingHandler):
    """Drives the update workflow from the "check for updates" row.

    The workflow instance lives as long as the handler, so an update found by
    one tap is still known on the next.
    """

    setting_id = "check_updates"

    def __init__(self, context: AppContext, workflow: UpdateWorkflow | None = None) -> None:
        if workflow is None:
            workflow = UpdateWorkflow(self.setting_id, context)
        self.workflow = workflow

    def handle(self, context, item, page, store) -> None:
        self.workflow.attach(page)
        self.workflow.trigger(context.app_info.version_name or "")

    def cleanup(self) -> None:
        self.workflow.shutdown()
