"""Domain events for the Wallet aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="Wallet")
class WalletCredited:
    """Money was added to a wallet (top-up)."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    user_id = Identifier(required=True)
    amount = Float(required=True)
    balance = Float(required=True)
    description = String(required=True)
    recorded_at = DateTime(required=True)


@storefront.event(part_of="Wallet")
class WalletDebited:
    """Money was taken from a wallet to pay for an order."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    user_id = Identifier(required=True)
    amount = Float(required=True)
    balance = Float(required=True)
    description = String(required=True)
    related_order_id = Identifier()
    recorded_at = DateTime(required=True)


@storefront.event(part_of="Wallet")
class WalletRefunded:
    """Money for a returned or cancelled order went back to the wallet."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    user_id = Identifier(required=True)
    amount = Float(required=True)
    balance = Float(required=True)
    description = String(required=True)
    related_order_id = Identifier()
    recorded_at = DateTime(required=True)
