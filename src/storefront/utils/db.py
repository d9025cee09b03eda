"""Schema management for SQL-backed storefront providers.

The in-memory provider needs no schema; only providers listed in
``SQL_PROVIDERS`` get tables.
"""

from protean.domain import Domain
from sqlalchemy import create_engine, inspect

SQL_PROVIDERS = ("sqlite", "postgresql")


def _sql_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in SQL_PROVIDERS:
            yield provider


def _register_models(domain: Domain, provider) -> None:
    # Accessing _dao makes Protean build the SQLAlchemy model for each
    # aggregate and entity on this provider
    records = list(domain.registry.aggregates.values()) + list(domain.registry.entities.values())
    for record in records:
        if record.cls.meta_.provider == provider.name:
            domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> list[str]:
    """Create tables for products, coupons, offers, wallets, carts and orders; return the table names."""
    created = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_models(domain, provider)
            provider._metadata.create_all(engine)
            created.extend(inspect(engine).get_table_names())
    return sorted(created)


def drop_db(domain: Domain) -> None:
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_models(domain, provider)
            provider._metadata.drop_all(engine)
