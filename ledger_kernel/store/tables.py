"""Logical table names shared by every store implementation."""

PRODUCTS = "products"
CUSTOMERS = "customers"
SUPPLIERS = "suppliers"
DELIVERY_NOTES = "delivery_notes"
DELIVERY_NOTE_ITEMS = "delivery_note_items"
DELIVERY_SETTLEMENTS = "delivery_settlements"
SETTLEMENT_ITEMS = "settlement_items"
SALES_INVOICES = "sales_invoices"
SALES_INVOICE_ITEMS = "sales_invoice_items"
PURCHASE_INVOICES = "purchase_invoices"
PURCHASE_INVOICE_ITEMS = "purchase_invoice_items"
RECEIPTS = "receipts"
PAYMENTS = "payments"
RETURNS = "returns"
INVENTORY_ADJUSTMENTS = "inventory_adjustments"
SEQUENCE_COUNTERS = "sequence_counters"
