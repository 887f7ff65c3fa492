"""
Module ORM Registry (``fund_modules._orm_registry``).

Responsibility
--------------
Ensure kernel and module ORM models are imported so that
``Base.metadata`` contains their tables before ``create_all()`` runs, and
register every immutability listener in one place.

Architecture position
---------------------
**Modules layer** -- utility.  Imports sibling ``fund_modules`` packages
and ``fund_kernel`` (allowed: modules -> kernel).  The kernel's
``create_tables()`` calls ``import_all_orm_models()`` lazily.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``fund_modules.*.orm`` module (idempotent)."""
    # Kernel tables first; module tables reference accounts and transactions.
    import fund_kernel.models  # noqa: F401
    import fund_modules.project.orm  # noqa: F401
    import fund_modules.funding.orm  # noqa: F401
    import fund_modules.reporting.orm  # noqa: F401


def register_module_listeners() -> None:
    """Install kernel and module immutability listeners (idempotent)."""
    from fund_kernel.db.immutability import register_immutability_listeners
    from fund_modules.funding.orm import register_funding_listeners

    import_all_orm_models()
    register_immutability_listeners()
    register_funding_listeners()


def create_all_tables() -> None:
    """
    Create every table and register listeners.

    Preconditions:
        Engine initialized via ``init_engine_from_url()``.
    """
    from fund_kernel.db.engine import create_tables

    register_module_listeners()
    create_tables()
