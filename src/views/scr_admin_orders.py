from typing import Dict, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, MarkdownViewer

from db.models import Order, OrderStatus
from shop import admin
from shop.lifecycle import OrderAction, allowed_order_actions
from utils.pure import format_price, format_timestamp, order_detail_markdown
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal, ReasonPromptModal

STATUS_FILTERS = ["all"] + [s.value for s in OrderStatus]


class AdminOrdersScreen(BaseScreen):
    """
    Order fulfilment: browse orders by status, fulfil or cancel the selected one.
    """

    def __init__(self) -> None:
        super().__init__()
        self._orders: Dict[str, Order] = {}
        self._status = "all"

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-status-filter"):
            for key in STATUS_FILTERS:
                yield Button(key.title(), id="btn-status-" + key, classes="btn-status")
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-actions"):
            yield Button("Fulfil", id="btn-fulfill", variant="success", disabled=True)
            yield Button("Cancel Order", id="btn-cancel", variant="error", disabled=True)

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Date", "Customer", "Status", "Items", "Total")
        self.query_one("#btn-status-all").variant = "primary"

    @on(Button.Pressed, ".btn-status")
    def handle_status_filter(self, event: Button.Pressed) -> None:
        self._status = event.button.id.removeprefix("btn-status-")
        for btn in self.query(".btn-status"):
            btn.variant = "primary" if btn is event.button else "default"
        self.handle_reload()

    @on(ScreenResume)
    @work(exclusive=True, group="orders")
    async def handle_reload(self) -> None:
        summaries = await admin.fetch_all_orders(self.app.state.db, self._status)
        self._orders = {s.order.id: s.order for s in summaries}
        table = self.query_one(DataTable)
        table.clear()
        for s in summaries:
            table.add_row(
                s.order.order_number,
                format_timestamp(s.order.created_at),
                s.user_email or "-",
                s.order.status.value.title(),
                s.item_count,
                format_price(s.order.total_amount, s.order.currency),
                key=s.order.id,
            )
        if not summaries:
            self._update_actions(None)
            await self.query_one(MarkdownViewer).document.update("### No orders.")

    def _selected(self) -> Optional[Order]:
        table = self.query_one(DataTable)
        if not table.row_count:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._orders.get(row_key.value)

    def _update_actions(self, order: Optional[Order]) -> None:
        allowed = allowed_order_actions(order.status) if order else []
        self.query_one("#btn-fulfill").disabled = OrderAction.FULFILL not in allowed
        self.query_one("#btn-cancel").disabled = OrderAction.CANCEL not in allowed

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        self._update_actions(self._orders.get(event.row_key.value))
        self._load_detail(event.row_key.value)

    @work(exclusive=True, group="detail")
    async def _load_detail(self, order_id: str) -> None:
        order, items = await admin.fetch_order_by_id(self.app.state.db, order_id)
        md = order_detail_markdown(order, items) if order else "### Order not found."
        await self.query_one(MarkdownViewer).document.update(md)

    @on(Button.Pressed, "#btn-fulfill")
    @work(exclusive=True, group="action")
    async def handle_fulfill(self) -> None:
        order = self._selected()
        if order is None:
            return
        if not await self.app.push_screen_wait(
            DialogModal(
                f"Mark {order.order_number} as fulfilled?",
                primary_text="Yes",
                secondary_text="No",
                tone="positive",
            )
        ):
            return
        result = await admin.fulfill_order(self.app.state.db, self.app.state.user.id, order.id)
        self._report(result, f"{order.order_number} fulfilled.")

    @on(Button.Pressed, "#btn-cancel")
    @work(exclusive=True, group="action")
    async def handle_cancel(self) -> None:
        order = self._selected()
        if order is None:
            return
        reason = await self.app.push_screen_wait(
            ReasonPromptModal(f"Cancel {order.order_number}?", "Cancel Order")
        )
        if reason is None:
            return
        result = await admin.cancel_order(
            self.app.state.db, self.app.state.user.id, order.id, reason
        )
        self._report(result, f"{order.order_number} cancelled.")

    def _report(self, result, success_msg: str) -> None:
        if result:
            self.notify(success_msg)
        else:
            self.notify(result.error, severity="error")
        self.handle_reload()
