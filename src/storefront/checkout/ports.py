"""Collaborators the checkout engine reads from but does not own.

Address and customer management live outside this package; checkout only
needs an ownership-checked address read and the customer's contact details.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class AddressRecord:
    id: str
    user_id: str
    full_name: str
    phone: str
    street: str
    city: str
    state: str
    pincode: str
    house: str = ""
    landmark: str = ""

    def as_shipping_address(self):
        """Fields copied onto the order's ``ShippingAddress`` snapshot."""
        data = asdict(self)
        data.pop("id")
        data.pop("user_id")
        return data


@dataclass(frozen=True)
class ContactRecord:
    email: str | None = None
    phone: str | None = None

    def as_contact(self):
        return {"email": self.email, "phone": self.phone}


class AddressBook(ABC):
    @abstractmethod
    def get_owned(self, user_id, address_id):
        """Return the address if it exists and belongs to ``user_id``, else None."""


class CustomerDirectory(ABC):
    @abstractmethod
    def get_contact(self, user_id):
        """Return the customer's ``ContactRecord``, or None if unknown."""
