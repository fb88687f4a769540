"""Data access for invoices, receipts and company balances."""
from __future__ import annotations

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import selectinload

from fleetledger.core.pagination import Page
from fleetledger.models import Car, CompanyBalance, Invoice, Payment, Receipt

from .base import BaseRepository


class InvoiceRepository(BaseRepository):
    """Queries over invoices and their payments."""

    def get(self, invoice_id: int) -> Invoice | None:
        statement = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(selectinload(Invoice.payments), selectinload(Invoice.cars))
        )
        return self._session.scalars(statement).first()

    def get_for_update(self, invoice_id: int) -> Invoice | None:
        statement = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.scalars(statement).first()

    def next_invoice_number(self, prefix: str) -> str:
        numbers = self._session.scalars(
            select(Invoice.invoice_number).where(Invoice.invoice_number.like(f"{prefix}%"))
        ).all()
        return f"{prefix}{self._next_sequence(list(numbers))}"

    def cars_by_ids(self, car_ids: list[int]) -> list[Car]:
        if not car_ids:
            return []
        statement = (
            select(Car)
            .where(Car.id.in_(car_ids))
            .options(selectinload(Car.carrier))
            .order_by(Car.id)
        )
        return list(self._session.scalars(statement).all())

    def list_invoices(
        self,
        *,
        page: int,
        limit: int,
        user_id: int | None = None,
        company: str | None = None,
        status: str | None = None,
        search: str | None = None,
    ) -> Page[Invoice]:
        statement = select(Invoice).options(selectinload(Invoice.payments))
        if user_id is not None:
            statement = statement.where(Invoice.user_id == user_id)
        if company:
            statement = statement.where(
                func.upper(Invoice.client_company_name) == company.strip().upper()
            )
        if status:
            statement = statement.where(Invoice.payment_status == status)
        pattern = self._search_pattern(search)
        if pattern:
            statement = statement.where(
                or_(
                    func.lower(Invoice.invoice_number).like(pattern),
                    func.lower(Invoice.client_company_name).like(pattern),
                    func.lower(Invoice.sender_company_name).like(pattern),
                )
            )
        statement = statement.order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        return self._paginate(statement, page=page, limit=limit)

    def detach_receipts(self, *, invoice_id: int | None = None, payment_id: int | None = None) -> None:
        """Null the receipt references so the receipts outlive the invoice/payment."""

        if invoice_id is not None:
            self._session.execute(
                update(Receipt)
                .where(Receipt.invoice_id == invoice_id)
                .values(invoice_id=None, payment_id=None)
                .execution_options(synchronize_session="fetch")
            )
        if payment_id is not None:
            self._session.execute(
                update(Receipt)
                .where(Receipt.payment_id == payment_id)
                .values(payment_id=None)
                .execution_options(synchronize_session="fetch")
            )

    def get_payment(self, invoice_id: int, payment_id: int) -> Payment | None:
        return self._session.scalars(
            select(Payment).where(Payment.id == payment_id, Payment.invoice_id == invoice_id)
        ).first()


class ReceiptRepository(BaseRepository):
    def get(self, receipt_id: int) -> Receipt | None:
        return self._session.get(Receipt, receipt_id)

    def next_receipt_number(self, prefix: str) -> str:
        numbers = self._session.scalars(
            select(Receipt.receipt_number).where(Receipt.receipt_number.like(f"{prefix}%"))
        ).all()
        return f"{prefix}{self._next_sequence(list(numbers))}"

    def list_by_invoice(self, invoice_id: int) -> list[Receipt]:
        statement = (
            select(Receipt)
            .where(Receipt.invoice_id == invoice_id)
            .order_by(Receipt.created_at.desc(), Receipt.id.desc())
        )
        return list(self._session.scalars(statement).all())

    def list_by_company(self, company_name: str, *, user_id: int | None = None) -> list[Receipt]:
        statement = select(Receipt).where(Receipt.client_company_name == company_name)
        if user_id is not None:
            statement = statement.where(Receipt.user_id == user_id)
        statement = statement.order_by(Receipt.payment_date.desc(), Receipt.id.desc())
        return list(self._session.scalars(statement).all())


class CompanyBalanceRepository(BaseRepository):
    def get(self, company_id: int) -> CompanyBalance | None:
        return self._session.get(CompanyBalance, company_id)

    def name_taken(self, company_name: str, *, exclude_id: int | None = None) -> bool:
        statement = (
            select(func.count())
            .select_from(CompanyBalance)
            .where(CompanyBalance.company_name == company_name)
        )
        if exclude_id is not None:
            statement = statement.where(CompanyBalance.id != exclude_id)
        return (self._session.scalar(statement) or 0) > 0

    def count_cars_for(self, company_name: str) -> int:
        return int(
            self._session.scalar(
                select(func.count())
                .select_from(Car)
                .where(func.upper(Car.company_name) == company_name)
            )
            or 0
        )

    def rename_references(self, old_name: str, new_name: str) -> dict[str, int]:
        """Point cars, invoices and receipts naming ``old_name`` at ``new_name``."""

        counts: dict[str, int] = {}
        for label, model, column in (
            ("cars", Car, Car.company_name),
            ("invoices", Invoice, Invoice.client_company_name),
            ("receipts", Receipt, Receipt.client_company_name),
        ):
            result = self._session.execute(
                update(model)
                .where(func.upper(column) == old_name)
                .values({column.key: new_name})
                .execution_options(synchronize_session="fetch")
            )
            counts[label] = int(result.rowcount or 0)
        return counts

    def get_by_name(self, company_name: str) -> CompanyBalance | None:
        return self._session.scalars(
            select(CompanyBalance).where(CompanyBalance.company_name == company_name)
        ).first()

    def get_for_update(self, company_name: str) -> CompanyBalance | None:
        statement = (
            select(CompanyBalance)
            .where(CompanyBalance.company_name == company_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.scalars(statement).first()

    def list_balances(self, *, search: str | None = None) -> list[CompanyBalance]:
        statement = select(CompanyBalance)
        pattern = self._search_pattern(search)
        if pattern:
            statement = statement.where(func.lower(CompanyBalance.company_name).like(pattern))
        return list(self._session.scalars(statement.order_by(CompanyBalance.company_name)).all())


__all__ = ["CompanyBalanceRepository", "InvoiceRepository", "ReceiptRepository"]
