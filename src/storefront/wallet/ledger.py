"""Wallet ledger: the service every wallet mutation goes through.

The ledger never opens its own transaction. Callers run it inside a checkout
or lifecycle unit of work so a debit or refund is committed together with the
order it belongs to. Each operation re-reads the wallet right before mutating
it; balances are never taken from a cached copy.
"""

import math
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from storefront.wallet.wallet import Wallet

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class TransactionPage:
    items: list
    page: int
    limit: int
    total: int
    pages: int


def paginate_transactions(entries, page=1, limit=DEFAULT_PAGE_SIZE, newest_first=True, type=None):
    """Filter, sort and slice an ordered sequence of wallet transactions.

    Pages are 1-based. Sorting uses the ledger sequence, which follows
    insertion order even when two entries share a timestamp.
    """
    page = max(int(page or 1), 1)
    limit = max(int(limit or DEFAULT_PAGE_SIZE), 1)

    selected = [e for e in entries if type is None or e.type == type]
    selected.sort(key=lambda e: e.sequence, reverse=newest_first)

    total = len(selected)
    start = (page - 1) * limit
    return TransactionPage(
        items=selected[start : start + limit],
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit) if total else 0,
    )


class WalletLedger:
    def _find(self, user_id):
        return current_domain.repository_for(Wallet).find_by_user(user_id)

    def get_or_create(self, user_id):
        """Return the user's wallet, creating an empty one on first use."""
        wallet = self._find(user_id)
        if wallet is None:
            wallet = Wallet.create(user_id=str(user_id))
            current_domain.repository_for(Wallet).add(wallet)
            logger.info("Wallet created", user_id=str(user_id))
        return wallet

    def balance(self, user_id):
        wallet = self._find(user_id)
        return wallet.balance if wallet else 0.0

    def credit(self, user_id, amount, description="Wallet Top-up"):
        wallet = self.get_or_create(user_id)
        wallet.credit(amount, description)
        current_domain.repository_for(Wallet).add(wallet)
        logger.info("Wallet credited", user_id=str(user_id), amount=amount, balance=wallet.balance)
        return wallet

    def debit(self, user_id, amount, description, related_order_id=None):
        """Take ``amount`` from the wallet; raises ``InsufficientFunds`` when the balance is short."""
        wallet = self.get_or_create(user_id)
        wallet.debit(amount, description, related_order_id)
        current_domain.repository_for(Wallet).add(wallet)
        logger.info(
            "Wallet debited",
            user_id=str(user_id),
            amount=amount,
            balance=wallet.balance,
            order_id=related_order_id,
        )
        return wallet

    def refund(self, user_id, amount, description, related_order_id=None):
        wallet = self.get_or_create(user_id)
        wallet.refund(amount, description, related_order_id)
        current_domain.repository_for(Wallet).add(wallet)
        logger.info(
            "Wallet refunded",
            user_id=str(user_id),
            amount=amount,
            balance=wallet.balance,
            order_id=related_order_id,
        )
        return wallet

    def transactions(self, user_id, page=1, limit=DEFAULT_PAGE_SIZE, type=None):
        wallet = self._find(user_id)
        return paginate_transactions(list(wallet.transactions) if wallet else [], page, limit, type=type)

    def recent_transactions(self, user_id, count=10):
        return self.transactions(user_id, page=1, limit=count).items
