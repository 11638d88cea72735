"""
Base repository providing common CRUD operations.
"""

from typing import Generic, TypeVar, List, Optional, Type, Any, Iterable
from sqlalchemy.orm import Session, Query

from .specifications import Specification

T = TypeVar('T')


class BaseRepository(Generic[T]):
    """
    Generic base repository providing common CRUD operations.
    All specific repositories should inherit from this class.

    Repositories flush but never commit; the owning service decides when a
    unit of work is complete.
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize the repository.

        Args:
            db: SQLAlchemy database session
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model

    def query(self) -> Query:
        return self.db.query(self.model)

    def create(self, obj: T) -> T:
        """
        Add a new record and flush so generated defaults (ids) are populated.

        Args:
            obj: Model instance to create

        Returns:
            Created model instance
        """
        self.db.add(obj)
        self.db.flush()
        return obj

    def create_all(self, objs: Iterable[T]) -> List[T]:
        objs = list(objs)
        self.db.add_all(objs)
        self.db.flush()
        return objs

    def get_by_id(self, id: str) -> Optional[T]:
        """
        Retrieve a record by its ID.

        Returns:
            Model instance or None if not found
        """
        return self.query().filter(self.model.id == id).first()

    def find(self, spec: Specification[T], order_by=None) -> List[T]:
        """
        Retrieve the records satisfying a specification.

        Args:
            spec: Specification translated to a SQL filter
            order_by: Optional ordering clause
        """
        query = self.query().filter(spec.to_sql_filter())
        if order_by is not None:
            query = query.order_by(order_by)
        return query.all()

    def update(self, obj: T) -> T:
        """
        Flush pending changes on an existing record.

        Returns:
            Updated model instance
        """
        self.db.flush()
        return obj

    def delete(self, obj: T) -> None:
        self.db.delete(obj)
        self.db.flush()

    def count(self) -> int:
        return self.query().count()

    def exists(self, id: str) -> bool:
        return self.query().filter(self.model.id == id).count() > 0

    def filter_by(self, **filters: Any) -> List[T]:
        """
        Filter records by equality on arbitrary columns.

        Unknown column names are ignored.
        """
        query = self.query()
        for key, value in filters.items():
            if hasattr(self.model, key):
                query = query.filter(getattr(self.model, key) == value)
        return query.all()
