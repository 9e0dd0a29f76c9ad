from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import DataTable, MarkdownViewer

from db import crud
from shop.orders import list_user_orders
from utils.pure import format_price, format_timestamp, order_detail_markdown
from views.base_screen import BaseScreen


class MyOrdersScreen(BaseScreen):
    """
    Customers browse their own orders, newest first, with details of the highlighted one.
    """

    # Show some hints in footer
    BINDINGS = [
        Binding("up,down", "noop", "Browse Orders", show=True, key_display="↑↓"),
    ]

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Date", "Status", "Items", "Total")

    @on(ScreenResume)
    @work(exclusive=True, group="orders")
    async def handle_refresh(self):
        table = self.query_one(DataTable)
        table.clear()
        user = self.app.state.user
        if user is None:
            await self._render_detail("### Sign in to see your orders.")
            return

        summaries = await list_user_orders(self.app.state.db, user.id)
        for s in summaries:
            table.add_row(
                s.order.order_number,
                format_timestamp(s.order.created_at),
                s.order.status.value.title(),
                s.item_count,
                format_price(s.order.total_amount, s.order.currency),
                key=s.order.id,
            )
        if not summaries:
            await self._render_detail("### You have not placed any orders yet.")

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        self._load_detail(event.row_key.value)

    @work(exclusive=True, group="detail")
    async def _load_detail(self, order_id: str) -> None:
        order, items = await crud.get_order_detail(self.app.state.db, order_id)
        if order is None:
            await self._render_detail("### Select an order to view its details.")
            return
        await self._render_detail(order_detail_markdown(order, items))

    async def _render_detail(self, md: str) -> None:
        await self.query_one("#md-order-detail", MarkdownViewer).document.update(md)
