from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, MarkdownViewer

from shop.errors import ShopError
from shop.orders import REQUIRED_ADDRESS_FIELDS, place_order
from utils.pure import format_price, generate_markdown_table
from views.modal_dialog import DialogModal

ADDRESS_FIELDS = {
    "recipient": ("Recipient", "Anna Andersson"),
    "street": ("Street", "Vingårdsvägen 1"),
    "postal_code": ("Postal code", "621 00"),
    "city": ("City", "Visby"),
    "phone": ("Phone (optional)", "+46 70 000 00 00"),
}


class CheckoutModal(ModalScreen[bool]):
    """
    A modal screen for check out: order summary plus delivery address.
    Return True when an order was placed.
    """

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            yield Label("Delivery Address")
            for key, (label, placeholder) in ADDRESS_FIELDS.items():
                yield Input(placeholder=f"{label}: {placeholder}", id="input-addr-" + key)
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Place Order", id="btn-submit", variant="primary")

    async def on_mount(self):
        cart = self.app.state.cart
        rows = [
            [
                item.product.name,
                format_price(item.product.price, item.product.currency),
                item.quantity,
                format_price(
                    None if item.product.price is None else item.product.price * item.quantity,
                    item.product.currency,
                ),
            ]
            for item in cart
        ]
        currency = cart.items[0].product.currency if len(cart) else "SEK"
        md = "### Order Summary\n\n"
        md += generate_markdown_table(
            ["Product", "Unit Price", "Quantity", "Total"], rows, ["l", "r", "c", "r"]
        )
        md += f"\n\n**Subtotal:** {format_price(cart.get_subtotal(), currency)}"
        await self.query_one(MarkdownViewer).document.update(md)
        self.query_one("#input-addr-recipient").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    def _collect_address(self):
        addr = {}
        for key in ADDRESS_FIELDS:
            field = self.query_one("#input-addr-" + key, Input)
            field.remove_class("-invalid")
            addr[key] = field.value.strip()
            if key in REQUIRED_ADDRESS_FIELDS and not addr[key]:
                field.add_class("-invalid")
        return addr

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        addr = self._collect_address()
        missing = [ADDRESS_FIELDS[k][0] for k in REQUIRED_ADDRESS_FIELDS if not addr[k]]
        if missing:
            self.notify(f"Required: {', '.join(missing)}.", severity="error")
            return

        if not await self.app.push_screen_wait(
            DialogModal(
                "Place order? This cannot be undone.",
                primary_text="Yes",
                secondary_text="No",
                tone="positive",
            )
        ):
            return

        state = self.app.state
        try:
            order = await place_order(state.db, state.user.id, state.cart, addr)
        except ShopError as e:
            self.notify(str(e), severity="error")
            return
        self.notify(f"Order placed. Your order number is {order.order_number}.")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
