"""
Time-bound, resource-scoped access grants issued after payment.
"""

from lexaccess.access.ledger import AccessGrantLedger

__all__ = ["AccessGrantLedger"]
