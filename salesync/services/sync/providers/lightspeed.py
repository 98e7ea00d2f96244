"""
Lightspeed sale normalization
Flattens nested Sale payloads (SaleLines, SalePayments, Customer) into
one SoldItem row per line item. Pure functions, no I/O.
"""
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from salesync.models.schemas.sales import SoldItem

logger = logging.getLogger(__name__)


# ============================================================================
# COERCION HELPERS
# ============================================================================

def as_list(value: Any) -> List[Any]:
    """Lightspeed returns a bare object for one child and an array for many."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _child(container: Any, key: str) -> List[Dict[str, Any]]:
    """Normalize e.g. SaleLines.SaleLine to a list of dicts."""
    if not isinstance(container, dict):
        return []
    return [entry for entry in as_list(container.get(key)) if isinstance(entry, dict)]


def _first(value: Any) -> Dict[str, Any]:
    for entry in as_list(value):
        if isinstance(entry, dict):
            return entry
    return {}


def _number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return number


def _text(value: Any, default: str = "") -> str:
    if value is None or value == "":
        return default
    return str(value)


def _flag(value: Any) -> bool:
    return value is True or value == "true"


# ============================================================================
# SALE → SOLD ITEMS
# ============================================================================

def summarize_payments(raw_sale: Dict[str, Any]) -> Dict[str, Any]:
    """Distinct payment type names (first-seen order) and the amount paid."""
    names: List[str] = []
    total_paid = 0.0

    for payment in _child(raw_sale.get("SalePayments"), "SalePayment"):
        payment_type = _first(payment.get("PaymentType"))
        name = _text(payment_type.get("name"), "Unknown")
        if name not in names:
            names.append(name)
        total_paid += _number(payment.get("amount"))

    return {"payment_types": ", ".join(names), "total_paid": total_paid}


def _sale_base(raw_sale: Dict[str, Any]) -> Dict[str, Any]:
    customer = _first(raw_sale.get("Customer"))
    calc_tax1 = _number(raw_sale.get("calcTax1"))
    calc_tax2 = _number(raw_sale.get("calcTax2"))

    base = {
        "sale_id": _text(raw_sale.get("saleID")),
        "ticket_number": _text(raw_sale.get("ticketNumber")),
        "reference_number": _text(raw_sale.get("referenceNumber")),
        "reference_number_source": _text(raw_sale.get("referenceNumberSource")),
        "sale_create_time": _text(raw_sale.get("createTime")),
        "sale_update_time": _text(raw_sale.get("updatetime") or raw_sale.get("updateTime")),
        "sale_complete_time": _text(raw_sale.get("completeTime")),
        "sale_completed": _flag(raw_sale.get("completed")),
        "sale_archived": _flag(raw_sale.get("archived")),
        "sale_voided": _flag(raw_sale.get("voided")),
        "sale_calc_subtotal": _number(raw_sale.get("calcSubtotal")),
        "sale_calc_discount": _number(raw_sale.get("calcDiscount")),
        "sale_calc_total": _number(raw_sale.get("calcTotal")),
        "sale_calc_tax1": calc_tax1,
        "sale_calc_tax2": calc_tax2,
        "sale_tax_total": calc_tax1 + calc_tax2,
        "sale_total": _number(raw_sale.get("total")),
        "sale_balance": _number(raw_sale.get("balance")),
        "customer_id": _text(raw_sale.get("customerID")),
        "customer_first_name": _text(customer.get("firstName")),
        "customer_last_name": _text(customer.get("lastName")),
        "employee_id": _text(raw_sale.get("employeeID")),
        "shop_id": _text(raw_sale.get("shopID")),
        "register_id": _text(raw_sale.get("registerID")),
    }
    base.update(summarize_payments(raw_sale))
    return base


def _line_fields(line: Dict[str, Any]) -> Dict[str, Any]:
    item = _first(line.get("Item"))
    note = _first(line.get("Note"))
    calc_tax1 = _number(line.get("calcTax1"))
    calc_tax2 = _number(line.get("calcTax2"))

    return {
        "sale_line_id": _text(line.get("saleLineID")),
        "item_id": _text(line.get("itemID")),
        "item_description": _text(item.get("description") or line.get("itemDescription")),
        "unit_quantity": _number(line.get("unitQuantity")),
        "unit_price": _number(line.get("unitPrice")),
        "normal_price": _number(line.get("normalPrice")),
        "avg_cost": _number(line.get("avgCost")),
        "fifo_cost": _number(line.get("fifoCost")),
        "discount_amount": _number(line.get("discountAmount")),
        "discount_percent": _number(line.get("discountPercent")),
        "calc_line_discount": _number(line.get("calcLineDiscount")),
        "calc_subtotal": _number(line.get("calcSubtotal")),
        "calc_total": _number(line.get("calcTotal")),
        "calc_tax1": calc_tax1,
        "calc_tax2": calc_tax2,
        "tax_total": calc_tax1 + calc_tax2,
        "tax1_rate": _number(line.get("tax1Rate")),
        "tax2_rate": _number(line.get("tax2Rate")),
        "taxable": _flag(line.get("tax")),
        "is_layaway": _flag(line.get("isLayaway")),
        "is_workorder": _flag(line.get("isWorkorder")),
        "is_special_order": _flag(line.get("isSpecialOrder")),
        "note": _text(note.get("note")),
        "custom_sku": _text(item.get("customSku")),
        "manufacturer_sku": _text(item.get("manufacturerSku")),
        "system_sku": _text(item.get("systemSku")),
        "upc": _text(item.get("upc")),
        "ean": _text(item.get("ean")),
        "line_create_time": _text(line.get("createTime")),
        "line_time_stamp": _text(line.get("timeStamp")),
    }


def parse_sale_to_items(
    raw_sale: Dict[str, Any],
    synced_at: Optional[datetime] = None
) -> List[SoldItem]:
    """
    Convert one raw Lightspeed sale into sold-item rows.

    Args:
        raw_sale: Sale object from the Sale.json listing (relations loaded)
        synced_at: Optional sync timestamp copied onto every row

    Returns:
        One SoldItem per sale line; empty when the sale has no lines.
        Lines without a saleLineID have no storage key and are skipped.
    """
    lines = _child(raw_sale.get("SaleLines"), "SaleLine")
    if not lines:
        return []

    base = _sale_base(raw_sale)
    items = []
    for line in lines:
        fields = _line_fields(line)
        if not fields["sale_line_id"]:
            logger.warning(f"Skipping line without saleLineID in sale {base['sale_id'] or '?'}")
            continue
        items.append(SoldItem(**base, **fields, synced_at=synced_at))
    return items


def sale_update_time(raw_sale: Dict[str, Any]) -> str:
    """Raw updatetime of a sale (the API has used both spellings)."""
    return _text(raw_sale.get("updatetime") or raw_sale.get("updateTime"))
