"""
Application services that sit on top of the auth and access core.
"""

from lexaccess.services.payments import PaymentConfirmation, confirm_payment
from lexaccess.services.profiles import ProfileService, ProfileUpdateResult

__all__ = [
    "PaymentConfirmation",
    "ProfileService",
    "ProfileUpdateResult",
    "confirm_payment",
]
