"""
Composable query criteria for repositories.

A criterion answers two questions: does this loaded row match
(is_satisfied_by), and what WHERE clause selects the matching rows
(to_sql_filter). List filters are built by chaining criteria with &.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar
from sqlalchemy import and_, true


T = TypeVar('T')


class Specification(ABC, Generic[T]):
    """One filter rule over a model."""

    @abstractmethod
    def is_satisfied_by(self, candidate: T) -> bool:
        ...

    @abstractmethod
    def to_sql_filter(self):
        """SQLAlchemy boolean expression selecting matching rows"""
        ...

    def __and__(self, other: "Specification[T]") -> "Specification[T]":
        return AllOf(self, other)


class AlwaysSpecification(Specification[T]):
    """Matches every row. Starting point when filters are added one by one."""

    def is_satisfied_by(self, candidate: T) -> bool:
        return True

    def to_sql_filter(self):
        return true()

    def __and__(self, other: Specification[T]) -> Specification[T]:
        return other


class AllOf(Specification[T]):
    def __init__(self, *parts: Specification[T]):
        self.parts = parts

    def __and__(self, other: Specification[T]) -> Specification[T]:
        return AllOf(*self.parts, other)

    def is_satisfied_by(self, candidate: T) -> bool:
        return all(part.is_satisfied_by(candidate) for part in self.parts)

    def to_sql_filter(self):
        return and_(*(part.to_sql_filter() for part in self.parts))
