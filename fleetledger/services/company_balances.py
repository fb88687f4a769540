"""Client companies: the name registry plus per-client credit and due balances."""
from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from fleetledger.core.errors import ConflictError, NotFoundError, ValidationError
from fleetledger.core.formatting import ZERO, to_money
from fleetledger.core.logger import get_logger
from fleetledger.core.security import AuthenticatedUser
from fleetledger.db.session import unit_of_work
from fleetledger.models import CompanyBalance
from fleetledger.repositories.invoices import CompanyBalanceRepository

from .access import ensure_owner, ensure_super_admin, resolve_owner

LOGGER = get_logger(__name__)


def normalize_company_name(value: str | None) -> str:
    name = (value or "").strip().upper()
    if not name:
        raise ValidationError("Company name is required")
    return name


class CompanyBalanceService:
    """Look up, register and adjust :class:`CompanyBalance` rows by company name.

    The ``apply_*`` methods run inside the caller's unit of work; the other
    mutators commit their own.
    """

    def __init__(
        self, session: Session, repository: CompanyBalanceRepository | None = None
    ) -> None:
        self._session = session
        self._repository = repository or CompanyBalanceRepository(session)

    def _get_or_create(self, company_name: str, created_by: int | None) -> CompanyBalance:
        balance = self._repository.get_for_update(company_name)
        if balance is None:
            balance = CompanyBalance(
                company_name=company_name,
                credit_balance=ZERO,
                due_balance=ZERO,
                created_by=created_by,
            )
            self._session.add(balance)
            self._session.flush()
        return balance

    def apply_credit(
        self, company_name: str, delta: Decimal, *, created_by: int | None = None
    ) -> CompanyBalance:
        """Add ``delta`` (may be negative) to the credit balance, floored at zero."""

        balance = self._get_or_create(normalize_company_name(company_name), created_by)
        updated = to_money(balance.credit_balance) + to_money(delta)
        if updated < ZERO:
            LOGGER.warning(
                "Credit balance would go negative; clamping to zero",
                extra={"company": balance.company_name, "delta": str(delta)},
            )
            updated = ZERO
        balance.credit_balance = updated
        # the row is re-read FOR UPDATE on the next lookup, so pending changes must be written first
        self._session.flush()
        return balance

    def apply_due(
        self, company_name: str, delta: Decimal, *, created_by: int | None = None
    ) -> CompanyBalance:
        """Add ``delta`` to the due balance; it never drops below zero."""

        balance = self._get_or_create(normalize_company_name(company_name), created_by)
        balance.due_balance = max(ZERO, to_money(balance.due_balance) + to_money(delta))
        self._session.flush()
        return balance

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def list_balances(self, *, search: str | None = None) -> list[CompanyBalance]:
        return self._repository.list_balances(search=search)

    def get_balance(self, company_name: str) -> CompanyBalance:
        balance = self._repository.get_by_name(normalize_company_name(company_name))
        if balance is None:
            raise NotFoundError("Company not found")
        return balance

    def get_company(self, actor: AuthenticatedUser, company_id: int) -> CompanyBalance:
        company = self._repository.get(company_id)
        if company is None:
            raise NotFoundError("Company not found")
        ensure_owner(actor, company.created_by)
        return company

    # ------------------------------------------------------------------
    # registry
    # ------------------------------------------------------------------
    def create_company(self, actor: AuthenticatedUser, payload: Mapping[str, Any]) -> CompanyBalance:
        """Register a client company; names are unique across all users."""

        name = normalize_company_name(payload.get("name"))
        owner_id = resolve_owner(actor, payload.get("user_id"))
        if self._repository.name_taken(name):
            raise ConflictError("Company with this name already exists")
        address = str(payload.get("address") or "").strip() or None

        with unit_of_work(self._session, "company creation"):
            company = CompanyBalance(
                company_name=name,
                address=address,
                credit_balance=ZERO,
                due_balance=ZERO,
                created_by=owner_id,
            )
            self._session.add(company)
            self._session.flush()

        LOGGER.info("Company created", extra={"company": name, "owner": owner_id})
        return company

    def rename_company(
        self, actor: AuthenticatedUser, company_id: int, payload: Mapping[str, Any]
    ) -> CompanyBalance:
        """Rename a company and carry the new name onto its cars, invoices and receipts."""

        company = self.get_company(actor, company_id)
        new_name = normalize_company_name(payload.get("name"))
        old_name = company.company_name
        address = payload.get("address")

        if new_name != old_name and self._repository.name_taken(new_name, exclude_id=company.id):
            raise ConflictError("Company with this name already exists")

        with unit_of_work(self._session, "company rename"):
            if address is not None:
                company.address = str(address).strip() or None
            renamed: dict[str, int] = {}
            if new_name != old_name:
                company.company_name = new_name
                self._session.flush()
                renamed = self._repository.rename_references(old_name, new_name)

        if renamed:
            LOGGER.info(
                "Company renamed",
                extra={"company_id": company.id, "old": old_name, "new": new_name, **renamed},
            )
        return company

    def delete_company(self, actor: AuthenticatedUser, company_id: int) -> None:
        company = self.get_company(actor, company_id)
        if self._repository.count_cars_for(company.company_name):
            raise ConflictError(
                "Company cannot be deleted because it is assigned in one or more trips. "
                "Remove the company from all trips first."
            )
        name = company.company_name
        with unit_of_work(self._session, "company deletion"):
            self._session.delete(company)
        LOGGER.info("Company deleted", extra={"company": name, "by": actor.username})

    # ------------------------------------------------------------------
    # manual balance maintenance
    # ------------------------------------------------------------------
    def adjust_credit(
        self, actor: AuthenticatedUser, company_name: str, delta: object
    ) -> CompanyBalance:
        """Add a signed amount to the company's credit (floored at zero)."""

        ensure_super_admin(actor)
        amount = to_money(delta, field="amount")
        with unit_of_work(self._session, "credit adjustment"):
            balance = self.apply_credit(company_name, amount, created_by=actor.user_id)
        LOGGER.info(
            "Company credit adjusted",
            extra={"company": balance.company_name, "delta": str(amount), "by": actor.username},
        )
        return balance

    def set_credit(
        self, actor: AuthenticatedUser, company_name: str, credit_balance: object
    ) -> CompanyBalance:
        ensure_super_admin(actor)
        if credit_balance in (None, ""):
            raise ValidationError("Credit balance is required")
        value = to_money(credit_balance, field="credit_balance")
        if value < ZERO:
            raise ValidationError("Credit balance cannot be negative")
        with unit_of_work(self._session, "credit update"):
            balance = self._get_or_create(normalize_company_name(company_name), actor.user_id)
            previous = to_money(balance.credit_balance)
            balance.credit_balance = value
        LOGGER.info(
            "Company credit set",
            extra={
                "company": balance.company_name,
                "previous": str(previous),
                "credit": str(value),
                "by": actor.username,
            },
        )
        return balance

    def adjust_due(
        self, actor: AuthenticatedUser, company_name: str, delta: object
    ) -> CompanyBalance:
        ensure_super_admin(actor)
        amount = to_money(delta, field="amount")
        with unit_of_work(self._session, "due balance adjustment"):
            balance = self.apply_due(company_name, amount, created_by=actor.user_id)
        LOGGER.info(
            "Company due balance adjusted",
            extra={"company": balance.company_name, "delta": str(amount), "by": actor.username},
        )
        return balance


__all__ = ["CompanyBalanceService", "normalize_company_name"]
