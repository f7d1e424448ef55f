"""Database helpers for the Ordering domain.

Only SQL providers need a schema; the memory provider used in development
and tests is skipped. `fetch_all` walks a repository page by page.
"""

from protean.domain import Domain
from protean.utils.globals import current_domain
from sqlalchemy import create_engine

_SQL_PROVIDERS = ("sqlite", "postgresql")


def _register_models(domain: Domain, provider_name: str) -> None:
    # Touching `_dao` forces Protean to build and register the SQLAlchemy model
    for registry in (domain.registry.aggregates, domain.registry.entities, domain.registry.projections):
        for _, record in registry.items():
            if record.cls.meta_.provider == provider_name:
                domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> list[str]:
    """Create tables for every SQL provider. Returns the providers touched."""
    touched = []
    with domain.domain_context():
        for name, provider in domain.providers.items():
            if provider.conn_info["provider"] not in _SQL_PROVIDERS:
                continue
            engine = create_engine(provider.conn_info["database_uri"])
            _register_models(domain, provider.name)
            provider._metadata.create_all(engine)
            touched.append(name)
    return touched


def drop_db(domain: Domain) -> list[str]:
    """Drop tables for every SQL provider. Returns the providers touched."""
    touched = []
    with domain.domain_context():
        for name, provider in domain.providers.items():
            if provider.conn_info["provider"] not in _SQL_PROVIDERS:
                continue
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            touched.append(name)
    return touched


def fetch_all(aggregate_cls, batch_size: int = 100) -> list:
    """Load every persisted instance of `aggregate_cls`, one page at a time."""
    dao = current_domain.repository_for(aggregate_cls)._dao
    items: list = []
    while True:
        results = dao.query.offset(len(items)).limit(batch_size).all()
        items.extend(results.items)
        if not results.items or len(items) >= results.total:
            return items
