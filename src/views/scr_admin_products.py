from __future__ import annotations

from typing import Dict, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer, OptionList
from textual.widgets.option_list import Option

from db.models import Availability, ProductWithPrice
from shop import admin
from utils.pure import format_price, format_timestamp, generate_markdown_table
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal
from views.modal_product_form import ProductFormModal


class AdminProductsScreen(BaseScreen):
    """
    Admins search the catalog, update price/stock/availability, create and delete products.
    """

    current_id: Optional[str] = None

    def __init__(self) -> None:
        super().__init__()
        self._products: Dict[str, ProductWithPrice] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            with Horizontal(id="hort-search"):
                yield Input(id="input-search", placeholder="Search for product...")
                yield Button("New Product", id="btn-new", variant="primary")
            yield OptionList(id="optlist-prods")
            yield MarkdownViewer(id="md-prod", show_table_of_contents=False)
            with Horizontal(id="hort-controls"):
                with Horizontal(id="div-new-inputs"):
                    with Vertical():
                        yield Label("New Price:")
                        yield Input(
                            placeholder="leave blank to keep",
                            id="input-price",
                            type="number",
                            validators=[Number(minimum=0.0)],
                        )

                    with Vertical():
                        yield Label("New Stock:")
                        yield Input(
                            placeholder="leave blank to keep",
                            id="input-stock",
                            type="integer",
                            validators=[Number(minimum=0)],
                        )
                with Horizontal(id="div-button"):
                    yield Button("Update", id="btn-update", variant="success")
                    yield Button("Toggle Stock", id="btn-availability", variant="warning")
                    yield Button("Hide", id="btn-hide", variant="warning")
                    yield Button("Delete", id="btn-delete", variant="error")

    def on_mount(self) -> None:
        self.query_one("#input-search", Input).focus()
        self.query_one("#md-prod").add_class("hidden")
        self.query_one("#hort-controls").add_class("hidden")

    @on(ScreenResume)
    @work(exclusive=True, group="products")
    async def handle_reload(self) -> None:
        products: List[ProductWithPrice] = await admin.fetch_all_products(self.app.state.db)
        self._products = {p.id: p for p in products}
        if self.current_id not in self._products:
            self._hide_detail()
        else:
            await self.render_product()
        self.update_optlist(self.query_one("#input-search", Input).value)

    def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.update_optlist(message.value)

    def on_option_list_option_selected(self, message: OptionList.OptionSelected):
        self.current_id = message.option.id
        self.query_one("#md-prod").remove_class("hidden")
        self.query_one("#hort-controls").remove_class("hidden")
        self.run_worker(self.render_product(), exclusive=True, group="render")

    def update_optlist(self, query: str) -> None:
        """
        fill option list with products whose name matches
        """
        query = query.strip().lower()
        opt_list = self.query_one("#optlist-prods", OptionList)
        opt_list.clear_options()
        for p in self._products.values():
            if query in p.name.lower():
                opt_list.add_option(
                    Option(f"{p.name} ({p.product_type.value}, {p.availability.value})", id=p.id)
                )

    def _hide_detail(self) -> None:
        self.current_id = None
        self.query_one("#md-prod").add_class("hidden")
        self.query_one("#hort-controls").add_class("hidden")

    async def render_product(self) -> None:
        prod = self._products.get(self.current_id)
        if prod is None:
            return

        rows = [
            ["Id", prod.id],
            ["Type", prod.product_type.value],
            ["Description", prod.description],
            ["ABV", prod.abv],
            ["Volume (ml)", prod.volume_ml],
            ["Stock", prod.stock_quantity],
            ["Availability", prod.availability.value],
            ["Current price", format_price(prod.price, prod.currency)],
            ["Created", format_timestamp(prod.created_at)],
        ]
        md_table = generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
        await self.query_one("#md-prod", MarkdownViewer).document.update(
            f"### Product Detail: {prod.name}\n\n" + md_table
        )

        self.query_one("#input-price", Input).value = "" if prod.price is None else f"{prod.price:.2f}"
        self.query_one("#input-stock", Input).value = str(prod.stock_quantity)

    @on(Button.Pressed, "#btn-update")
    @work(exclusive=True, group="action")
    async def handle_update(self) -> None:
        prod = self._products.get(self.current_id)
        if prod is None:
            return

        price_input = self.query_one("#input-price", Input)
        stock_input = self.query_one("#input-stock", Input)
        for field in (price_input, stock_input):
            if field.value and not field.is_valid:
                field.focus()
                field.add_class("-invalid")
                return

        new_price = float(price_input.value) if price_input.value else None
        if new_price == prod.price:
            new_price = None
        updates = {}
        if stock_input.value and int(stock_input.value) != prod.stock_quantity:
            updates["stock_quantity"] = int(stock_input.value)

        if new_price is None and not updates:
            self.notify("Nothing to update.", severity="warning")
            return

        result = await admin.update_product(
            self.app.state.db, self.app.state.user.id, prod.id, updates, new_price, prod.currency
        )
        self._report(result, "Product updated successfully.")

    @on(Button.Pressed, "#btn-availability")
    @work(exclusive=True, group="action")
    async def handle_toggle_availability(self) -> None:
        prod = self._products.get(self.current_id)
        if prod is None:
            return
        target = (
            Availability.OUT_OF_STOCK
            if prod.availability == Availability.IN_STOCK
            else Availability.IN_STOCK
        )
        result = await admin.update_product(
            self.app.state.db, self.app.state.user.id, prod.id, {"availability": target}
        )
        self._report(result, f"{prod.name} is now {target.value.replace('_', ' ')}.")

    @on(Button.Pressed, "#btn-hide")
    @work(exclusive=True, group="action")
    async def handle_hide(self) -> None:
        await self._delete(hard=False)

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True, group="action")
    async def handle_delete(self) -> None:
        await self._delete(hard=True)

    async def _delete(self, hard: bool) -> None:
        prod = self._products.get(self.current_id)
        if prod is None:
            return
        caption = (
            f"Permanently delete {prod.name}? Past orders keep their item names."
            if hard
            else f"Hide {prod.name} from the shop? It can be restocked later."
        )
        if not await self.app.push_screen_wait(
            DialogModal(
                caption,
                primary_text="Yes",
                secondary_text="No",
                tone="error" if hard else "warning",
            )
        ):
            return

        result = await admin.delete_product(
            self.app.state.db, self.app.state.user.id, prod.id, hard_delete=hard
        )
        self._report(result, f"{prod.name} {'deleted' if hard else 'hidden from the shop'}.")

    @on(Button.Pressed, "#btn-new")
    @work(exclusive=True, group="action")
    async def handle_new(self) -> None:
        form = await self.app.push_screen_wait(
            ProductFormModal(await admin.fetch_suppliers(self.app.state.db))
        )
        if form is None:
            return
        draft, price = form
        result, product_id = await admin.create_product(
            self.app.state.db,
            self.app.state.user.id,
            draft,
            price,
            self.app.state.settings.currency,
        )
        if result:
            self.current_id = product_id
            self.query_one("#md-prod").remove_class("hidden")
            self.query_one("#hort-controls").remove_class("hidden")
        self._report(result, f"{draft.name} created.")

    def _report(self, result, success_msg: str) -> None:
        if result:
            self.notify(success_msg)
        else:
            self.notify(result.error, severity="error")
        self.handle_reload()
