"""Repository for the Transaction aggregate."""

from protean.exceptions import ObjectNotFoundError

from marketplace.domain import marketplace
from marketplace.errors import NotFoundError
from marketplace.transaction.transaction import Transaction, TransactionType


@marketplace.repository(part_of=Transaction)
class TransactionRepository:
    def find(self, transaction_id) -> Transaction:
        try:
            return self.get(transaction_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(
                f"Transaction {transaction_id} not found",
                transaction_id=str(transaction_id),
            ) from exc

    def find_by_session(self, session_id) -> Transaction | None:
        return (
            self._dao.query.filter(
                external_session_id=str(session_id),
                transaction_type=TransactionType.PAYMENT.value,
            )
            .all()
            .first
        )

    def find_by_payment_reference(self, payment_reference) -> Transaction | None:
        if not payment_reference:
            return None
        return self._dao.query.filter(payment_reference=str(payment_reference)).all().first

    def resolve(self, reference) -> Transaction:
        """Find a transaction by its session id, falling back to its own id."""
        transaction = self.find_by_session(reference)
        if transaction is not None:
            return transaction
        return self.find(reference)

    def find_paid_for_customer(self, customer_id) -> list[Transaction]:
        """The customer's paid checkouts, newest first."""
        transactions = (
            self._dao.query.filter(
                customer_id=str(customer_id),
                transaction_type=TransactionType.PAYMENT.value,
            )
            .order_by("-created_at")
            .all()
            .items
        )
        return [transaction for transaction in transactions if transaction.is_paid]

    def find_paid_for_vendor(self, vendor_id) -> list[Transaction]:
        """Paid checkouts with at least one line sold by the vendor, newest first."""
        transactions = (
            self._dao.query.filter(transaction_type=TransactionType.PAYMENT.value).order_by("-created_at").all().items
        )
        return [
            transaction
            for transaction in transactions
            if transaction.is_paid
            and any(line["vendor_id"] == str(vendor_id) for line in transaction.line_snapshot)
        ]
