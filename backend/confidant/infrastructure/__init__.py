"""Infrastructure Layer — database engine, chat transport client, logging.

Invariants:
    - Infrastructure never imports from services/
    - Outbound calls wrapped with timeout and error logging

Design Decisions:
    - Thin wrappers over raw clients (ADR: single responsibility)
"""
