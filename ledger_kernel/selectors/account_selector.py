"""
AccountSelector -- account lookups for system postings.

Responsibility:
    Resolves the account holding a SystemAccountPurpose for a tenant and
    reports which required purposes a tenant's chart is missing.

Failure modes:
    - SystemAccountNotFoundError when no active account holds the purpose.
    - AccountNotFoundError for an unknown account id.
"""

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.enums import SystemAccountPurpose
from ledger_kernel.exceptions import AccountNotFoundError, SystemAccountNotFoundError
from ledger_kernel.models.account import Account
from ledger_kernel.selectors.base import BaseSelector


class AccountSelector(BaseSelector[Account]):
    """Read-only account queries."""

    def get(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def find_by_purpose(
        self, tenant_id: UUID, purpose: SystemAccountPurpose
    ) -> Account | None:
        return self.session.execute(
            select(Account).where(
                Account.tenant_id == tenant_id,
                Account.system_purpose == purpose.value,
                Account.is_active.is_(True),
            )
        ).scalar_one_or_none()

    def get_by_purpose(self, tenant_id: UUID, purpose: SystemAccountPurpose) -> Account:
        account = self.find_by_purpose(tenant_id, purpose)
        if account is None:
            raise SystemAccountNotFoundError(str(tenant_id), purpose.value)
        return account

    def missing_required_purposes(self, tenant_id: UUID) -> list[SystemAccountPurpose]:
        """Required purposes with no active account, in declaration order."""
        assigned = set(
            self.session.execute(
                select(Account.system_purpose).where(
                    Account.tenant_id == tenant_id,
                    Account.system_purpose.is_not(None),
                    Account.is_active.is_(True),
                )
            ).scalars()
        )
        return [p for p in SystemAccountPurpose.required() if p.value not in assigned]
