"""Header alias tables for uploaded spreadsheets.

Uploaded files name the same column in many ways ("Order No", "ORDER NO",
"order_no", "OrderNo"). Headers are reduced to a token (lower case, letters and
digits only) and looked up against an ordered alias list per canonical field;
the first alias with a usable value wins.
"""
import re
from typing import Any, Dict, Iterator, Mapping, Tuple

ORDER_COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "order_no": ("Order No", "Order Number", "Order"),
    "order_type": ("Order Type", "Type"),
    "product": ("Product", "Product Name"),
    "design": ("Design", "Design Code", "Design No"),
    "weight": ("Weight", "Wt", "Gross Weight"),
    "size": ("Size",),
    "quantity": ("Quantity", "Qty"),
    "remarks": ("Remarks", "Remark", "Notes"),
    "order_date": ("Order Date", "Date", "Order Dt", "Dt"),
}

RECONCILE_COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "order_no": ("Order No", "Order Number"),
    "design": ("Design Code", "Design"),
    "karigar": ("Karigar", "Karigar Name"),
    "weight": ("Weight", "Wt"),
    "quantity": ("Quantity", "Qty"),
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalise_key_token(value: Any) -> str:
    if value is None:
        return ""
    return _NON_ALNUM.sub("", str(value).lower())


def index_row(row: Mapping[Any, Any]) -> Dict[str, Any]:
    """Map header tokens to cell values; the leftmost column wins on a clash."""
    indexed: Dict[str, Any] = {}
    for key, value in row.items():
        token = normalise_key_token(key)
        if token and token not in indexed:
            indexed[token] = value
    return indexed


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def alias_values(indexed: Mapping[str, Any], aliases: Tuple[str, ...]) -> Iterator[Any]:
    """Yield the populated cell values for ``aliases`` in alias order."""
    for alias in aliases:
        value = indexed.get(normalise_key_token(alias))
        if not is_blank(value):
            yield value
