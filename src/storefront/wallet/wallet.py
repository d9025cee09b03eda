"""Wallet aggregate — per-user store credit with an append-only transaction log.

Balance and history always move together: every mutation appends exactly one
``WalletTransaction`` and adjusts ``balance`` inside the same atomic change, so
the balance can be recomputed from the log at any time.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from storefront.domain import storefront
from storefront.errors import InsufficientFunds, InvalidAmount
from storefront.utils.money import ZERO, quantize, round_money, to_decimal
from storefront.wallet.events import WalletCredited, WalletDebited, WalletRefunded


class TransactionType(Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    REFUND = "refund"


def signed_amount(entry):
    """Ledger effect of an entry: credits and refunds add, debits subtract."""
    amount = to_decimal(entry.amount)
    return -amount if entry.type == TransactionType.DEBIT.value else amount


@storefront.entity(part_of="Wallet")
class WalletTransaction:
    type = String(required=True, choices=TransactionType)
    amount = Float(required=True, min_value=0.01)
    description = String(required=True, max_length=500)
    related_order_id = Identifier()
    sequence = Integer(required=True, min_value=1)
    created_at = DateTime(required=True)


@storefront.aggregate
class Wallet:
    user_id = Identifier(required=True, unique=True)
    balance = Float(default=0.0, min_value=0.0)
    transactions = HasMany(WalletTransaction)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(user_id=user_id, balance=0.0, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Ledger queries
    # -------------------------------------------------------------------
    def history(self):
        """Transactions in the order they were recorded."""
        return sorted(self.transactions, key=lambda t: t.sequence)

    def recomputed_balance(self):
        return round_money(sum((signed_amount(t) for t in self.transactions), ZERO))

    def is_consistent(self):
        return quantize(self.balance) == quantize(self.recomputed_balance())

    # -------------------------------------------------------------------
    # Ledger mutations
    # -------------------------------------------------------------------
    def _record(self, transaction_type, amount, description, related_order_id=None):
        amount = to_decimal(amount)
        if amount <= ZERO:
            raise InvalidAmount(amount)
        amount = quantize(amount)

        delta = -amount if transaction_type == TransactionType.DEBIT else amount
        now = datetime.now(UTC)

        with atomic_change(self):
            self.balance = round_money(to_decimal(self.balance) + delta)
            entry = WalletTransaction(
                type=transaction_type.value,
                amount=float(amount),
                description=description,
                related_order_id=related_order_id,
                sequence=len(self.transactions) + 1,
                created_at=now,
            )
            self.add_transactions(entry)
            self.updated_at = now

        return entry

    def credit(self, amount, description="Wallet Top-up"):
        entry = self._record(TransactionType.CREDIT, amount, description)
        self.raise_(
            WalletCredited(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                amount=entry.amount,
                balance=self.balance,
                description=entry.description,
                recorded_at=entry.created_at,
            )
        )
        return entry

    def debit(self, amount, description, related_order_id=None):
        if quantize(amount) > quantize(self.balance):
            raise InsufficientFunds(str(self.user_id), self.balance, float(quantize(amount)))

        entry = self._record(TransactionType.DEBIT, amount, description, related_order_id)
        self.raise_(
            WalletDebited(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                amount=entry.amount,
                balance=self.balance,
                description=entry.description,
                related_order_id=related_order_id,
                recorded_at=entry.created_at,
            )
        )
        return entry

    def refund(self, amount, description, related_order_id=None):
        entry = self._record(TransactionType.REFUND, amount, description, related_order_id)
        self.raise_(
            WalletRefunded(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                amount=entry.amount,
                balance=self.balance,
                description=entry.description,
                related_order_id=related_order_id,
                recorded_at=entry.created_at,
            )
        )
        return entry


@storefront.repository(part_of=Wallet)
class WalletRepository:
    def find_by_user(self, user_id):
        wallets = self._dao.query.filter(user_id=str(user_id)).all().items
        return wallets[0] if wallets else None
