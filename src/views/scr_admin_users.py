from typing import Dict, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Label

from db.models import UserAccount, UserStatus
from shop import admin
from shop.lifecycle import UserAction, allowed_user_actions
from utils.pure import format_timestamp
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal, ReasonPromptModal

STATUS_FILTERS = {"all": None, **{s.value: s for s in UserStatus}}

ACTION_LABELS = {
    UserAction.APPROVE: ("Approve", "success"),
    UserAction.REJECT: ("Reject", "error"),
    UserAction.BLOCK: ("Block", "error"),
    UserAction.UNBLOCK: ("Unblock", "warning"),
}


class AdminUsersScreen(BaseScreen):
    """
    Account approval. Only actions the selected account's status allows are enabled.
    """

    def __init__(self) -> None:
        super().__init__()
        self._users: Dict[str, UserAccount] = {}
        self._status: Optional[UserStatus] = UserStatus.PENDING

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-status-filter"):
            for key in STATUS_FILTERS:
                yield Button(key.title(), id="btn-status-" + key, classes="btn-status")
        yield DataTable(id="table-users")
        yield Label("Select an account.", id="label-selected")
        with Horizontal(id="hort-actions"):
            for action, (label, variant) in ACTION_LABELS.items():
                yield Button(
                    label, id="btn-" + action.value, variant=variant, classes="btn-action", disabled=True
                )

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Email", "Role", "Status", "Registered", "Approved")
        self._highlight_filter()

    def _highlight_filter(self) -> None:
        key = self._status.value if self._status else "all"
        for btn in self.query(".btn-status"):
            btn.variant = "primary" if btn.id == "btn-status-" + key else "default"

    @on(Button.Pressed, ".btn-status")
    def handle_status_filter(self, event: Button.Pressed) -> None:
        self._status = STATUS_FILTERS[event.button.id.removeprefix("btn-status-")]
        self._highlight_filter()
        self.handle_reload()

    @on(ScreenResume)
    @work(exclusive=True, group="users")
    async def handle_reload(self) -> None:
        users: List[UserAccount] = await admin.fetch_all_users(self.app.state.db, self._status)
        self._users = {u.id: u for u in users}
        table = self.query_one(DataTable)
        table.clear()
        for u in users:
            table.add_row(
                u.email,
                u.role.value,
                u.status.value.title(),
                format_timestamp(u.created_at),
                format_timestamp(u.approved_at),
                key=u.id,
            )
        self._update_actions(None)

    def _selected(self) -> Optional[UserAccount]:
        table = self.query_one(DataTable)
        if not table.row_count:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._users.get(row_key.value)

    def _update_actions(self, user: Optional[UserAccount]) -> None:
        user = user or self._selected()
        allowed = allowed_user_actions(user.status) if user else []
        # an admin cannot act on their own account
        if user and user.id == self.app.state.user.id:
            allowed = []
        for action in ACTION_LABELS:
            self.query_one("#btn-" + action.value).disabled = action not in allowed
        self.query_one("#label-selected", Label).update(
            f"{user.email}: {user.status.value}" if user else "Select an account."
        )

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        self._update_actions(self._users.get(event.row_key.value))

    @on(Button.Pressed, ".btn-action")
    @work(exclusive=True, group="action")
    async def handle_action(self, event: Button.Pressed) -> None:
        user = self._selected()
        if user is None:
            return
        action = UserAction(event.button.id.removeprefix("btn-"))
        db = self.app.state.db
        admin_id = self.app.state.user.id

        if action in (UserAction.REJECT, UserAction.BLOCK):
            reason = await self.app.push_screen_wait(
                ReasonPromptModal(f"{action.value.title()} {user.email}?", action.value.title())
            )
            if reason is None:
                return
            call = admin.reject_user if action == UserAction.REJECT else admin.block_user
            result = await call(db, admin_id, user.id, reason)
        else:
            if not await self.app.push_screen_wait(
                DialogModal(
                    f"{action.value.title()} {user.email}?",
                    primary_text="Yes",
                    secondary_text="No",
                    tone="positive",
                )
            ):
                return
            call = admin.approve_user if action == UserAction.APPROVE else admin.unblock_user
            result = await call(db, admin_id, user.id)

        if result:
            self.notify(f"{user.email}: {action.value} done.")
        else:
            self.notify(result.error, severity="error")
        self.handle_reload()
