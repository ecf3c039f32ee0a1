"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every journal line.
Architecture position: Kernel > Models.  May import from db/ and
    domain/enums only.

Invariants enforced:
    - code is unique per tenant (uq_account_tenant_code).
    - system_purpose, when set, is unique per tenant
      (uq_account_tenant_purpose), so purpose lookup is unambiguous.

Failure modes:
    - IntegrityError on a duplicate code or purpose within a tenant.
    - SystemAccountNotFoundError (raised by AccountSelector) when no active
      account carries a purpose a posting needs.

Audit relevance:
    System-generated postings resolve accounts by purpose, never by code, so
    the purpose column defines where automatic entries land.
"""

from uuid import UUID

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.enums import AccountType, NormalBalance, SystemAccountPurpose


class Account(TrackedBase):
    """
    Chart of accounts entry.

    Contract:
        Accounts are looked up by (tenant_id, system_purpose) for every
        system-generated line.  Manual postings may reference any active
        account of the tenant.

    Guarantees:
        - account_type is one of ASSET, LIABILITY, EQUITY, REVENUE, EXPENSE.
        - normal_balance follows from account_type.

    Non-goals:
        - Does NOT seed a chart of accounts; tenants are provisioned
          elsewhere.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_account_tenant_code"),
        UniqueConstraint("tenant_id", "system_purpose", name="uq_account_tenant_purpose"),
        Index("idx_account_tenant_active", "tenant_id", "is_active"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Human-readable account code, e.g. "411000"
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    # Role for system postings (null for ordinary accounts)
    system_purpose: Mapped[SystemAccountPurpose | None] = mapped_column(
        String(50),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # System accounts cannot be deleted by tenant users
    is_system: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def normal_balance(self) -> NormalBalance:
        return AccountType(self.account_type).normal_balance
