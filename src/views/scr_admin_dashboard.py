from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import MarkdownViewer

from shop import admin
from utils.pure import format_price, format_timestamp, generate_markdown_table
from views.base_screen import BaseScreen


class AdminDashboardScreen(BaseScreen):
    """
    Back-office overview: headline numbers and the latest admin activity.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-dashboard", show_table_of_contents=False)

    @on(ScreenResume)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        db = self.app.state.db
        stats = await admin.get_dashboard_stats(db)
        activity = await admin.get_recent_activity(db, 10)

        md = (
            "### Overview\n\n"
            f"- Revenue (paid and fulfilled): {format_price(stats.total_revenue, self.app.state.settings.currency)}\n"
            f"- Orders awaiting fulfilment: {stats.pending_orders}\n"
            f"- Orders in the last 7 days: {stats.recent_orders}\n"
            f"- Accounts awaiting approval: {stats.pending_users}\n"
            f"- Approved customers: {stats.approved_users}\n"
            f"- Products: {stats.total_products}\n\n"
            "### Recent Activity\n\n"
        )
        rows = [
            [
                format_timestamp(r.activity.created_at),
                r.admin_email or r.activity.admin_id,
                r.activity.action.replace("_", " "),
                r.activity.resource_type,
                r.activity.metadata.get("reason") or r.activity.metadata.get("product_name"),
            ]
            for r in activity
        ]
        if rows:
            md += generate_markdown_table(["When", "Admin", "Action", "Resource", "Note"], rows)
        else:
            md += "No activity yet."
        await self.query_one("#md-dashboard", MarkdownViewer).document.update(md)
