"""
Access grant ledger.

A grant is a paid, 24-hour permission for one client to reach one
consultation over video, chat or both. Two rules:

1. At most one active grant per consultation. Enforced by the store's
   unique index, so it holds across processes. A second grant request
   while one is live returns the existing grant.
2. Expiry is evaluated when reading. Nothing sweeps or deletes lapsed
   grants; a lapsed grant simply stops granting access.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from lexaccess.core.errors import ConflictError, NotFoundError, ValidationError
from lexaccess.core.models import AccessGrant, AccessKind, AccessResult, GrantResult
from lexaccess.core.utils import utc_now
from lexaccess.storage.base import DuplicateKeyError, GrantRepository, MissingReferenceError

logger = logging.getLogger(__name__)

# Insert attempts before giving up on a contended consultation
MAX_GRANT_ATTEMPTS = 3


class AccessGrantLedger:
    """Issues and checks time-bound access grants."""

    def __init__(
        self,
        grants: GrantRepository,
        window: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utc_now,
    ):
        self.grants = grants
        self.window = window
        self._clock = clock

    async def grant(
        self,
        consultation_id: str,
        client_id: str,
        advocate_id: str,
        access_kind: AccessKind | str,
        payment_id: str,
    ) -> GrantResult:
        """
        Grant access to a consultation for `window` from now.

        Idempotent per consultation: if a live grant exists it is returned
        unchanged with `already_granted=True`, whatever access kind or
        payment the second call carries.

        Raises:
            ValidationError: a required field is missing or the access kind is unknown
            NotFoundError: the client or advocate has no profile
            ConflictError: the consultation stayed contended through every retry
        """
        missing = [
            name for name, value in (
                ("consultation_id", consultation_id),
                ("client_id", client_id),
                ("advocate_id", advocate_id),
                ("access_kind", access_kind),
                ("payment_id", payment_id),
            )
            if not value
        ]
        if missing:
            raise ValidationError(missing_fields=missing)

        try:
            kind = AccessKind(access_kind)
        except ValueError:
            raise ValidationError(f"Invalid access type: {access_kind}")

        for _ in range(MAX_GRANT_ATTEMPTS):
            now = self._clock()
            existing = await self.grants.find_active(consultation_id)
            if existing is not None and existing.is_live(now):
                return GrantResult(grant=existing, already_granted=True)

            grant = AccessGrant(
                consultation_id=consultation_id,
                client_id=client_id,
                advocate_id=advocate_id,
                access_kind=kind,
                granted_at=now,
                expires_at=now + self.window,
                payment_id=payment_id,
            )

            try:
                # A lapsed grant still holds the active slot; retire it in the same transaction
                await self.grants.insert_active(
                    grant,
                    supersede_id=existing.id if existing is not None else None,
                )
            except DuplicateKeyError:
                # Someone else inserted first; loop round and return theirs
                logger.info(f"Concurrent grant for consultation {consultation_id}, re-reading")
                continue
            except MissingReferenceError:
                raise NotFoundError("Client or advocate not found")

            logger.info(
                f"Granted {kind.value} access on {consultation_id} to {client_id} "
                f"until {grant.expires_at.isoformat()} (payment {payment_id})"
            )
            return GrantResult(grant=grant)

        raise ConflictError(
            f"Could not settle an active grant for consultation {consultation_id}",
            public_message="Access grant is being updated, please retry",
        )

    async def check_access(self, consultation_id: str, client_id: str) -> AccessResult:
        """
        Does this client hold a live grant on this consultation?

        A lapsed grant reports no access even though its record remains.
        """
        missing = [
            name for name, value in (
                ("consultation_id", consultation_id),
                ("client_id", client_id),
            )
            if not value
        ]
        if missing:
            raise ValidationError(missing_fields=missing)

        grant = await self.grants.find_active_for_client(consultation_id, client_id)
        now = self._clock()
        if grant is None or not grant.is_live(now):
            return AccessResult(has_access=False)

        return AccessResult(
            has_access=True,
            grant=grant,
            time_remaining_ms=grant.remaining_ms(now),
        )
