from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

from db.models import Availability, ProductWithPrice
from shop.catalog import fetch_product_by_id
from utils.pure import format_price, generate_markdown_table


class ProdDetailModal(ModalScreen[bool]):
    """
    prod detail, plus adding to cart
    Will return true if cart changed, false if not
    """

    order_qty = reactive(1)

    def __init__(self, product_id: str) -> None:
        super().__init__()

        self._product_id = product_id
        self._prod: ProductWithPrice = None
        self._in_cart = 0

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical():
                yield Label("Quantity")
                with Horizontal():
                    yield Button("-", id="btn-sub-qty")
                    yield Input(value="1", id="input-order-qty", type="integer")
                    yield Button("+", id="btn-add-qty")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Add to Cart", id="btn-addcart", variant="primary")

    async def on_mount(self):
        self._prod = await fetch_product_by_id(self.app.state.db, self._product_id)
        if self._prod is None:
            self.notify("Product no longer exists.", severity="error")
            self.dismiss(False)
            return

        prod = self._prod
        rows = [
            ["Type", prod.product_type.value.title()],
            ["Price", format_price(prod.price, prod.currency)],
            ["ABV", f"{prod.abv:g} %" if prod.abv is not None else None],
            ["Volume", f"{prod.volume_ml} ml" if prod.volume_ml else None],
            ["In stock", prod.stock_quantity],
        ]
        md = f"### {prod.name}\n\n{prod.description or ''}\n\n"
        md += generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
        await self.query_one(MarkdownViewer).document.update(md)

        order_btn = self.query_one("#btn-addcart")
        if prod.availability != Availability.IN_STOCK or prod.stock_quantity < 1:
            order_btn.label = "Out of Stock"
            order_btn.disabled = True
            order_btn.variant = "warning"

        self.query_one("#input-order-qty").validators = [
            Number(minimum=1, maximum=max(prod.stock_quantity, 1))
        ]

        # editing an existing cart line sets the quantity instead of adding
        self._in_cart = self.app.state.cart.get_item_quantity(prod.id)
        if self._in_cart:
            self.order_qty = self._in_cart
            order_btn.label = "Update Cart"

        self.query_one("#input-order-qty").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    async def on_input_changed(self, message: Input.Changed) -> None:
        if (
            message.input.id == "input-order-qty"
            and message.input.is_valid
            and message.value
            and self.focused == message.input
        ):
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int):
        if self._prod is None:
            return
        self.query_one("#btn-sub-qty").disabled = qty <= 1
        self.query_one("#btn-add-qty").disabled = qty >= self._prod.stock_quantity
        self.query_one("#input-order-qty").value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self.order_qty = max(self.order_qty - 1, 1)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)

    @on(Button.Pressed, "#btn-addcart")
    def handle_addcart(self):
        cart = self.app.state.cart
        if self._in_cart:
            cart.update_quantity(self._prod.id, self.order_qty)
            self.app.notify("Updated cart item quantity.")
        else:
            cart.add_item(self._prod, self.order_qty)
            self.app.notify(f"{self._prod.name} added to cart.")
        self.dismiss(True)
