"""
Header alias tables.

Warehouse MIS sheets are typed by hand, so one canonical field arrives under
many spellings. Aliases are compared after normalize_column_name(), so case
and runs of whitespace do not matter; punctuation does.
"""

from __future__ import annotations

from collections.abc import Sequence

from ingest.coercion import normalize_column_name

INBOUND_COLUMN_ALIASES: dict[str, list[str]] = {
    "received_date": [
        "received date", "received_date", "receiveddate", "inward date", "inwarddate",
        "grn_date", "grn date", "grndate", "date", "received",
    ],
    "invoice_no": [
        "stn_no./invoice_no.", "stn_no./invoice_no", "stn_no/invoice_no", "stn_no_invoice_no",
        "stn_no", "invoice_no", "invoice no", "invoice_no.", "invoice no.", "invoice number",
        "invoice_number", "stn_invoice_no", "stn no./invoice no.", "stn no./invoice no",
        "stn no/invoice no", "stn no invoice no",
    ],
    "invoice_value": [
        "invoice_value", "invoice value", "invoice_value_(rs)", "invoice value (rs)",
        "invoice_value_in_inr", "value", "total_value", "total value",
        "invoice_total_value", "invoice total value",
    ],
    "party_name": ["party_name", "party name", "partyname", "customer", "client", "supplier"],
    "invoice_qty": [
        "invoice_qty", "invoice qty", "invoiceqty", "quantity", "qty", "invoice_quantity",
        "invoice quantity", "invoice", "invoices",
    ],
    "boxes": [
        "boxes", "no_of_boxes", "no of boxes", "noofboxes", "box_count", "no_of_box", "no of box",
        "no. of box", "no. of boxes", "bags/box", "bags_box", "bags box", "bags", "bag",
    ],
    "type": ["type", "category", "item_type", "item type"],
    "article_no": ["article_no", "article no", "articleno", "article_number", "article number", "sku", "item_code"],
}

OUTBOUND_COLUMN_ALIASES: dict[str, list[str]] = {
    "invoice_no": ["invoice no.", "invoice no", "invoice_no", "invoice number", "invoice_number", "inv no."],
    "invoice_date": ["invoice date", "invoice_date", "inv date", "bill date"],
    "dispatched_date": [
        "dispatched_date", "dispatched date", "dispatcheddate", "dispatch_date", "dispatch date", "dispatch",
    ],
    "party_name": ["party_name", "party name", "partyname", "customer", "client", "party"],
    "invoice_qty": ["invoice qty", "invoice_qty", "invoice quantity", "qty"],
    "boxes": ["no. of box", "no. of boxes", "no of box", "no_of_box", "boxes", "box count"],
    "gross_total": [
        "invoice gross total value", "invoice_gross_total_value", "gross total", "gross_total",
        "gross total value", "invoice gross total",
    ],
}


def build_column_map(headers: Sequence[str], aliases: dict[str, list[str]]) -> dict[str, int]:
    """
    Map canonical field -> header index.

    Aliases are tried in declared order; the first alias present in the
    header row wins. Fields with no matching header are left out.
    """
    normalized = [normalize_column_name(h) for h in headers]
    column_map: dict[str, int] = {}
    for field_name, names in aliases.items():
        for name in names:
            target = normalize_column_name(name)
            if target in normalized:
                column_map[field_name] = normalized.index(target)
                break
    return column_map
