from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.events import ScreenResume
from textual.message import Message
from textual.widgets import Button, Label, Rule

from db.models import CartItem
from utils.messages import CartChangedMessage
from utils.pure import format_price
from views.base_screen import BaseScreen
from views.modal_checkout import CheckoutModal
from views.modal_dialog import DialogModal
from views.modal_prod_detail import ProdDetailModal


class CartItemActionEditMessage(Message):
    bubble = True


class CartItemActionRemoveMessage(Message):
    bubble = True


class CartItemActionLabel(Label):
    def action_edit(self):
        self.post_message(CartItemActionEditMessage())

    def action_remove(self):
        self.post_message(CartItemActionRemoveMessage())


class CartItemWidget(HorizontalGroup):
    def __init__(self, item: CartItem):
        super().__init__()
        self.item = item

    def compose(self):
        product = self.item.product
        line_total = None if product.price is None else product.price * self.item.quantity
        with Container(id="div-cart-item-group"):
            with Container(id="div-item"):
                yield Label(product.name, id="label-item-name")
                yield Label(f"x {self.item.quantity}", id="label-item-qty")
                yield Label(format_price(line_total, product.currency), id="label-item-price")
            with Container(id="div-actions"):
                yield CartItemActionLabel("[@click=edit()]Edit[/]", id="link-item-edit")
                yield CartItemActionLabel("[@click=remove()]Remove[/]", id="link-item-remove")

    @on(CartItemActionEditMessage)
    @work()
    async def handle_edit_item(self):
        if await self.app.push_screen_wait(ProdDetailModal(self.item.product.id)):
            self.post_message(CartChangedMessage())

    @on(CartItemActionRemoveMessage)
    @work()
    async def handle_remove_item(self):
        remove_confirmed = await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove this item from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        )

        if remove_confirmed:
            self.app.state.cart.remove_item(self.item.product.id)
            self.post_message(CartChangedMessage())
            self.notify("Item removed from cart.", severity="information")


class CartScreen(BaseScreen):
    """
    cart lines, subtotal and checkout
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Label("Subtotal: 0.00 SEK", id="label-cart-total")
        yield Label("", id="label-cart-note")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    @on(CartChangedMessage)
    @on(ScreenResume)
    @work(exclusive=True)  # must be exclusive, concurrent refreshes mount duplicates
    async def handle_cart_change(self):
        cart = self.app.state.cart
        items = cart.items

        content = self.query_one("#vertscroll-content")
        await content.remove_children()
        await content.mount_all([CartItemWidget(item) for item in items])
        content.set_class(not items, "no-items")

        currency = items[0].product.currency if items else self.app.state.settings.currency
        self.query_one("#label-cart-total").update(
            f"Subtotal: {format_price(cart.get_subtotal(), currency)}"
        )
        self.query_one("#label-cart-note").update(
            "Some items are price on request and are not included in the subtotal."
            if cart.has_price_on_request()
            else ""
        )
        await self.handle_sidebar_refresh()

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        if not len(self.app.state.cart):
            self.app.notify("Cart is empty.", severity="warning")
            return

        if await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            self.app.state.cart.clear_cart()
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work()
    async def handle_checkout(self) -> None:
        state = self.app.state
        if not len(state.cart):
            self.app.notify("Cart is empty.", severity="warning")
            return
        if state.user is None:
            self.app.notify("Sign in to place an order.", severity="warning")
            self.app.sign_in_flow()
            return
        await state.refresh_user()
        if not state.can_order:
            self.app.notify(
                "Your account must be approved before you can order.", severity="warning"
            )
            return
        if state.cart.has_price_on_request():
            self.app.notify(
                "Remove price-on-request items and contact us for them.", severity="warning"
            )
            return

        await self.app.push_screen_wait(CheckoutModal())
        self.post_message(CartChangedMessage())
