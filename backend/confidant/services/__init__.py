"""Services Layer — the imperative shell around core/ rules.

Invariants:
    - One AsyncSession per service instance; every state transition commits once
    - Services raise ConfidantErrors; routes never catch them
    - Aggregate counters change only through in-database increments

Design Decisions:
    - One service per component (directory, registry, broker, matchmaker, router,
      moderation, audit) for locality (ADR: no god objects)
"""
