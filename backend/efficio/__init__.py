"""
Efficio Backend — Package Initializer
======================================

What: Data layer and thin HTTP surface for a shared grocery-list application.
Who:  Imported by uvicorn (``efficio.main:app``), pytest and the services themselves.

Architecture Note:

    ┌─────────────────────────────────────┐
    │      Routes + Middleware (HTTP)     │  ← token header, JSON, status codes
    ├─────────────────────────────────────┤
    │   Services (repositories, sessions) │  ← ownership, cascades, ordering
    ├─────────────────────────────────────┤
    │    Transaction Engine + Id Allocator│  ← watch / queue / commit
    ├─────────────────────────────────────┤
    │   Capability Store (Redis | memory) │  ← hash, set, counter primitives
    └─────────────────────────────────────┘

    Users own stores, stores contain aisles, aisles contain products. The store
    offers no joins or foreign keys, so every parent/child link is a membership
    set kept in lock-step with the child record inside one optimistic transaction.
"""

__version__ = "1.0.0"
