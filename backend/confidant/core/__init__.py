"""Core Layer — pure domain rules, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, models/ or db/
    - Rules read entities through repository_protocols, never ORM classes

Design Decisions:
    - Functional core separated from imperative shell (ADR: impureim sandwich)
"""
