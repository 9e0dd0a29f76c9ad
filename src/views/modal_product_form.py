from typing import List, Optional, Tuple

from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, Select

from db.models import ProductDraft, ProductType, Supplier


class ProductFormModal(ModalScreen[Optional[Tuple[ProductDraft, Optional[float]]]]):
    """
    New product form. Dismisses with (draft, price) or None; a blank price
    creates the product as price on request.
    """

    def __init__(self, suppliers: List[Supplier]) -> None:
        super().__init__()
        self._suppliers = suppliers

    def compose(self) -> ComposeResult:
        with Vertical(id="div-product-form"):
            with VerticalScroll():
                yield Label("Name")
                yield Input(id="input-name")
                yield Label("Type")
                yield Select(
                    [(t.value.title(), t) for t in ProductType],
                    value=ProductType.WINE,
                    allow_blank=False,
                    id="select-type",
                )
                yield Label("Supplier")
                yield Select([(s.name, s.id) for s in self._suppliers], id="select-supplier")
                yield Label("Description")
                yield Input(id="input-description")
                yield Label("ABV (%)")
                yield Input(id="input-abv", type="number", validators=[Number(0, 100)])
                yield Label("Volume (ml)")
                yield Input(id="input-volume", type="integer", validators=[Number(minimum=1)])
                yield Label("Stock")
                yield Input("0", id="input-stock", type="integer", validators=[Number(minimum=0)])
                yield Label("Price (blank = on request)")
                yield Input(id="input-price", type="number", validators=[Number(minimum=0.0)])
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Create", id="btn-submit", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#input-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    def _value(self, input_id: str) -> str:
        return self.query_one(input_id, Input).value.strip()

    @on(Button.Pressed, "#btn-submit")
    def handle_submit(self) -> None:
        name = self._value("#input-name")
        if not name:
            self.query_one("#input-name").add_class("-invalid")
            self.notify("Name is required.", severity="error")
            return
        for input_id in ("#input-abv", "#input-volume", "#input-stock", "#input-price"):
            field = self.query_one(input_id, Input)
            if field.value and not field.is_valid:
                field.focus()
                field.add_class("-invalid")
                self.notify("Check the highlighted field.", severity="error")
                return

        supplier = self.query_one("#select-supplier", Select).value
        abv, volume = self._value("#input-abv"), self._value("#input-volume")
        price = self._value("#input-price")
        draft = ProductDraft(
            name=name,
            product_type=self.query_one("#select-type", Select).value,
            description=self._value("#input-description") or None,
            supplier_id=None if supplier == Select.BLANK else supplier,
            abv=float(abv) if abv else None,
            volume_ml=int(volume) if volume else None,
            stock_quantity=int(self._value("#input-stock") or 0),
        )
        self.dismiss((draft, float(price) if price else None))

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self) -> None:
        self.dismiss(None)
