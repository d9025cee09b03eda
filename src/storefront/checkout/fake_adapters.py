"""In-memory address book and customer directory for development and tests."""

from uuid import uuid4

from storefront.checkout.ports import AddressBook, AddressRecord, ContactRecord, CustomerDirectory


class InMemoryAddressBook(AddressBook):
    def __init__(self):
        self._addresses = {}

    def add(self, user_id, **fields):
        address = AddressRecord(id=fields.pop("id", None) or str(uuid4()), user_id=str(user_id), **fields)
        self._addresses[address.id] = address
        return address

    def get_owned(self, user_id, address_id):
        address = self._addresses.get(str(address_id))
        if address is None or address.user_id != str(user_id):
            return None
        return address


class InMemoryCustomerDirectory(CustomerDirectory):
    def __init__(self):
        self._contacts = {}

    def register(self, user_id, email=None, phone=None):
        contact = ContactRecord(email=email, phone=phone)
        self._contacts[str(user_id)] = contact
        return contact

    def get_contact(self, user_id):
        return self._contacts.get(str(user_id))
