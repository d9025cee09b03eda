"""Wallet top-up — command and handler."""

from protean import handle
from protean.fields import Float, Identifier, String

from storefront.domain import storefront
from storefront.wallet.ledger import WalletLedger
from storefront.wallet.wallet import Wallet


@storefront.command(part_of="Wallet")
class TopUpWallet:
    """Add store credit to a user's wallet."""

    user_id = Identifier(required=True)
    amount = Float(required=True)
    description = String(max_length=500, default="Wallet Top-up")


@storefront.command_handler(part_of=Wallet)
class TopUpWalletHandler:
    @handle(TopUpWallet)
    def top_up(self, command):
        wallet = WalletLedger().credit(
            command.user_id,
            command.amount,
            command.description or "Wallet Top-up",
        )
        return wallet.balance
