"""
Sales Schemas
Flat sold-item rows produced from Lightspeed sales
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class SoldItem(BaseModel):
    """
    One line item of one Lightspeed sale, denormalized.

    Every row repeats the parent sale's identifiers, totals, flags, customer
    and payment summary so it can be queried on its own. sale_line_id is the
    natural key: re-syncing the same line overwrites the stored row.
    """

    # Line item
    sale_line_id: str
    item_id: str = ""
    item_description: str = ""
    unit_quantity: float = 0
    unit_price: float = 0
    normal_price: float = 0
    avg_cost: float = 0
    fifo_cost: float = 0
    discount_amount: float = 0
    discount_percent: float = 0
    calc_line_discount: float = 0
    calc_subtotal: float = 0
    calc_total: float = 0
    calc_tax1: float = 0
    calc_tax2: float = 0
    tax_total: float = 0
    tax1_rate: float = 0
    tax2_rate: float = 0
    taxable: bool = False
    is_layaway: bool = False
    is_workorder: bool = False
    is_special_order: bool = False
    note: str = ""
    custom_sku: str = ""
    manufacturer_sku: str = ""
    system_sku: str = ""
    upc: str = ""
    ean: str = ""
    line_create_time: str = ""
    line_time_stamp: str = ""

    # Parent sale
    sale_id: str = ""
    ticket_number: str = ""
    reference_number: str = ""
    reference_number_source: str = ""
    sale_create_time: str = ""
    sale_update_time: str = ""
    sale_complete_time: str = ""
    sale_completed: bool = False
    sale_archived: bool = False
    sale_voided: bool = False
    sale_calc_subtotal: float = 0
    sale_calc_discount: float = 0
    sale_calc_total: float = 0
    sale_calc_tax1: float = 0
    sale_calc_tax2: float = 0
    sale_tax_total: float = 0
    sale_total: float = 0
    sale_balance: float = 0

    # Who / where
    customer_id: str = ""
    customer_first_name: str = ""
    customer_last_name: str = ""
    employee_id: str = ""
    shop_id: str = ""
    register_id: str = ""

    # Payment summary
    payment_types: str = ""
    total_paid: float = 0

    synced_at: Optional[datetime] = None


class SoldItemsResponse(BaseModel):
    """Page of stored sold items, newest completed sale first."""
    items: list[SoldItem]
    count: int
    limit: int
    offset: int
