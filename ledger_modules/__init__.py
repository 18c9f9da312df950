"""
Ledger Modules.

Orchestration layers over the ledger kernel and engines.  Each module
holds its domain models, a service, and where it has one, its config
schema and workflow.

Modules:
- Accounts: customers, suppliers, balance recompute, statements
- Inventory: products, the stock ledger, adjustments, returns
- Consignment: delivery notes, settlements, reconciliation
- Sales: sales invoices, delivery, payments against invoices
- Purchasing: purchase invoices
- Payments: customer receipts and supplier payments
- Reporting: the product movement report

Stock arithmetic and statement walks live in ``ledger_engines``.
"""
