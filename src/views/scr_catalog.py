from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Input

from db.models import ProductType, ProductWithPrice
from shop.catalog import fetch_products
from utils.pure import format_price
from views.base_screen import BaseScreen
from views.modal_prod_detail import ProdDetailModal

TYPE_FILTERS = {"all": None, **{t.value: t for t in ProductType}}


class CatalogScreen(BaseScreen):
    """
    Product listing with type filter and text search, open to everyone.
    """

    # only here to be displayed in footer
    BINDINGS = [
        Binding("fn+shift+1", "abs(1)", "View Product", show=True, key_display="⏎"),
    ]

    product_type = reactive(None)
    query_str = reactive("")

    def __init__(self):
        super().__init__()
        self._products: List[ProductWithPrice] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-type-filter"):
            for key in TYPE_FILTERS:
                yield Button(key.title(), id="btn-type-" + key, classes="btn-type")
        yield Input(id="input-search", placeholder="Filter by name...")
        yield DataTable(id="table-catalog")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Name", "Type", "ABV", "Volume", "Price")
        self.query_one("#btn-type-all").variant = "primary"
        self.query_one("#input-search").focus()

    @on(ScreenResume)
    def handle_resume(self):
        self.load_products()

    @on(Button.Pressed, ".btn-type")
    def handle_type_filter(self, event: Button.Pressed):
        key = event.button.id.removeprefix("btn-type-")
        for btn in self.query(".btn-type"):
            btn.variant = "primary" if btn is event.button else "default"
        self.product_type = TYPE_FILTERS[key]

    def watch_product_type(self, _old, _new):
        self.load_products()

    async def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.query_str = message.value.strip().lower()
            self.render_table()

    @on(DataTable.RowSelected)
    def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        self.open_product(event.row_key.value)

    @work()
    async def open_product(self, product_id: str):
        if await self.app.push_screen_wait(ProdDetailModal(product_id)):
            await self.handle_sidebar_refresh()

    @work(exclusive=True)
    async def load_products(self) -> None:
        self._products = await fetch_products(self.app.state.db, self.product_type)
        self.render_table()

    def render_table(self) -> None:
        table = self.query_one(DataTable)
        table.clear()
        for p in self._products:
            if self.query_str and self.query_str not in p.name.lower():
                continue
            table.add_row(
                p.name,
                p.product_type.value.title(),
                f"{p.abv:g} %" if p.abv is not None else "-",
                f"{p.volume_ml} ml" if p.volume_ml else "-",
                format_price(p.price, p.currency),
                key=p.id,
            )
