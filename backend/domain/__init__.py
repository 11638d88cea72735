"""
Domain Layer

This package contains the core business domain logic, separated from
persistence concerns and infrastructure.

Structure:
- value_objects/: Immutable status types and their transition rules
"""
