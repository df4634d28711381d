"""
Payment confirmation hook.

Payments are processed elsewhere. When one completes for an approved
consultation request, the payment side calls `confirm_payment` exactly once;
a duplicate confirmation is harmless because the ledger returns the grant it
already issued.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from lexaccess.access.ledger import AccessGrantLedger
from lexaccess.core.errors import ValidationError
from lexaccess.core.models import AccessKind, GrantResult


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ConsultationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ConsultationType(str, Enum):
    VIDEO = "VIDEO"
    CHAT = "CHAT"
    BOTH = "BOTH"


ACCESS_KIND_FOR: dict[ConsultationType, AccessKind] = {
    ConsultationType.VIDEO: AccessKind.VIDEO,
    ConsultationType.CHAT: AccessKind.CHAT,
    ConsultationType.BOTH: AccessKind.BOTH,
}


class PaymentConfirmation(BaseModel):
    """What the payment side tells us about a settled payment."""

    payment_id: str
    consultation_id: str
    client_id: str
    advocate_id: str
    consultation_type: ConsultationType
    payment_status: PaymentStatus
    consultation_status: ConsultationStatus


async def confirm_payment(
    ledger: AccessGrantLedger,
    confirmation: PaymentConfirmation,
) -> GrantResult:
    """Grant consultation access for a completed payment."""
    if confirmation.payment_status != PaymentStatus.COMPLETED:
        raise ValidationError(f"Payment {confirmation.payment_id} is {confirmation.payment_status.value}")
    if confirmation.consultation_status != ConsultationStatus.APPROVED:
        raise ValidationError("Request must be approved before access is granted")

    return await ledger.grant(
        consultation_id=confirmation.consultation_id,
        client_id=confirmation.client_id,
        advocate_id=confirmation.advocate_id,
        access_kind=ACCESS_KIND_FOR[confirmation.consultation_type],
        payment_id=confirmation.payment_id,
    )
