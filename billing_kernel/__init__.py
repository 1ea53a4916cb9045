"""
Billing Kernel

Reconciliation core for invoicing and bank credits:
- Scoped, per-financial-year sequence numbers (locked counter rows)
- Atomic payment-credit allocation across invoices
- Ledger statements with derived opening and running balances
"""

__version__ = "0.1.0"
