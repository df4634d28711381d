"""
Relational schema.

The partial unique index on access_grants is what makes grant creation
idempotent across processes: only one row per consultation may have
is_active set.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from lexaccess.core.utils import utc_now


class Base(DeclarativeBase):
    pass


class ProfileRow(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    phone: Mapped[str | None] = mapped_column(String(32))
    address: Mapped[str | None] = mapped_column(Text)

    role: Mapped[str] = mapped_column(String(32), nullable=False, default="REGULAR_USER")
    kyc_type: Mapped[str] = mapped_column(String(16), nullable=False, default="REGULAR")
    can_upload_reports: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    vkyc_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    vkyc_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class VerificationDocumentRow(Base):
    __tablename__ = "vkyc_documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type: Mapped[str] = mapped_column(String(64), nullable=False)
    document_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    kyc_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class AccessGrantRow(Base):
    __tablename__ = "access_grants"
    __table_args__ = (
        Index(
            "uq_access_grants_active_consultation",
            "consultation_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    consultation_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    client_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    advocate_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    access_kind: Mapped[str] = mapped_column(String(8), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    payment_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
