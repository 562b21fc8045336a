"""
Ledger posting core.

Validates business documents (invoices, bills, payments, manual journals),
expands them into balanced general-ledger lines and aggregates posted
entries into trial balances and statements.
"""
