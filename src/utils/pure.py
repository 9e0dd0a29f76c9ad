from datetime import datetime
from typing import Iterable, List, Literal, Optional, Sequence

_ALIGN_RULES = {"l": ":---", "c": ":---:", "r": "---:"}


def generate_markdown_table(
    headers: Optional[Sequence[object]],
    rows: Iterable[Sequence[object]],
    aligns: Optional[Sequence[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Render rows as a Markdown table.

    Args:
        headers: column headers; when None the first row is used as header.
        rows: table body, cells are converted with str().
        aligns: per-column 'l', 'c' or 'r'; defaults to left.

    Returns:
        str: the table, or "" when there is nothing to show.
    """
    body: List[List[str]] = [[_cell(c) for c in row] for row in rows]
    if headers is None:
        if not body:
            return ""
        head, body = body[0], body[1:]
    else:
        head = [_cell(h) for h in headers]
    if not head:
        return ""

    aligns = list(aligns) if aligns is not None else ["l"] * len(head)
    if len(aligns) != len(head):
        raise ValueError("Length of aligns must match number of headers.")

    lines = [
        "| " + " | ".join(head) + " |",
        "| " + " | ".join(_ALIGN_RULES[a] for a in aligns) + " |",
    ]
    lines += ["| " + " | ".join(row) + " |" for row in body]
    return "\n".join(lines)


def _cell(value: object) -> str:
    # pipes would split the cell
    return ("-" if value is None else str(value)).replace("|", "\\|")


def format_price(price: Optional[float], currency: str = "SEK") -> str:
    if price is None:
        return "Price on request"
    return f"{price:,.2f} {currency}".replace(",", " ")


def format_timestamp(ts: Optional[datetime]) -> str:
    if ts is None:
        return "-"
    return ts.astimezone().strftime("%Y-%m-%d %H:%M")


def order_detail_markdown(order, items) -> str:
    """Markdown for one order: header, delivery address and its item snapshots."""
    addr = order.delivery_addr or {}
    address = ", ".join(
        str(addr[k]) for k in ("recipient", "street", "postal_code", "city", "country") if addr.get(k)
    )
    md = (
        f"### Order {order.order_number or order.id}\n\n"
        f"Status: **{order.status.value.title()}**  \n"
        f"Placed: {format_timestamp(order.created_at)}  \n"
        f"Deliver to: {address or '-'}\n\n"
    )
    if order.cancel_reason:
        md += f"Cancel reason: {order.cancel_reason}\n\n"
    rows = [
        [
            i.product_name_snapshot,
            i.quantity,
            format_price(i.unit_price, order.currency),
            format_price(i.line_total, order.currency),
        ]
        for i in items
    ]
    md += generate_markdown_table(["Product", "Qty", "Unit Price", "Line Total"], rows, ["l", "r", "r", "r"])
    md += f"\n\n**Total:** {format_price(order.total_amount, order.currency)}"
    return md
