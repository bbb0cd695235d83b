"""
Base Data Access Object (DAO) class.

WHY: The DAO pattern separates database operations from business logic.
Services never build SQL themselves; they call DAOs, which flush inside the
caller's transaction and leave commit/rollback to the unit of work
(request-scoped get_db, or the auto-close job's per-ticket transaction).
"""

from typing import Generic, TypeVar, Type, Optional, List, Any, Dict, Sequence
from sqlalchemy import select, func, insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.models.base import Base

# Type variable for model class
ModelType = TypeVar("ModelType", bound=Base)


class BaseDAO(Generic[ModelType]):
    """
    Base Data Access Object providing CRUD operations for all models.

    Type Parameters:
        ModelType: The SQLAlchemy model class this DAO manages
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize DAO with model class and database session.

        Args:
            model: The SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def create(self, **kwargs: Any) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Field values for the new record

        Returns:
            The created model instance with database-generated fields populated

        Raises:
            IntegrityError: If unique constraints are violated
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()  # Flush to get auto-generated fields
        await self.session.refresh(instance)
        return instance

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """
        Retrieve a single record by primary key.

        Args:
            id: Primary key value

        Returns:
            The model instance if found, None otherwise
        """
        result = await self.session.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def get_by_field(self, field_name: str, value: Any) -> Optional[ModelType]:
        """
        Retrieve a single record by any field.

        Args:
            field_name: Name of the field to search
            value: Value to match

        Returns:
            The model instance if found, None otherwise

        Raises:
            AttributeError: If field_name doesn't exist on the model
        """
        if not hasattr(self.model, field_name):
            raise AttributeError(f"{self.model.__name__} has no field '{field_name}'")

        result = await self.session.execute(
            select(self.model).where(getattr(self.model, field_name) == value)
        )
        return result.scalar_one_or_none()

    async def get_all(self, skip: int = 0, limit: int = 100, **filters: Any) -> List[ModelType]:
        """
        Retrieve multiple records with optional pagination and filtering.

        Args:
            skip: Number of records to skip (for pagination)
            limit: Maximum number of records to return
            **filters: Field name to value filters (e.g., ticket_id=1)

        Returns:
            List of model instances matching the filters
        """
        query = select(self.model)

        for field, value in filters.items():
            if hasattr(self.model, field):
                query = query.where(getattr(self.model, field) == value)

        query = query.offset(skip).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count(self, **filters: Any) -> int:
        """
        Count records matching filters.

        Args:
            **filters: Field name to value filters

        Returns:
            Number of records matching the filters
        """
        query = select(func.count()).select_from(self.model)

        for field, value in filters.items():
            if hasattr(self.model, field):
                query = query.where(getattr(self.model, field) == value)

        result = await self.session.execute(query)
        return result.scalar_one()

    async def delete_instance(self, instance: ModelType) -> None:
        """
        Delete a loaded record.

        Args:
            instance: Model instance to delete
        """
        await self.session.delete(instance)
        await self.session.flush()

    async def insert_ignoring_conflicts(
        self,
        values: Dict[str, Any],
        conflict_columns: Sequence[str],
    ) -> bool:
        """
        Insert a row unless it collides with an existing unique key.

        WHAT: Atomic "insert or detect conflict" at the database level.

        HOW: PostgreSQL and SQLite get INSERT ... ON CONFLICT DO NOTHING and
        report whether a row was written via rowcount. Other dialects run a
        plain INSERT inside a savepoint and treat IntegrityError as the
        conflict signal.

        Args:
            values: Column values for the new row
            conflict_columns: Columns of the unique key that may collide

        Returns:
            True if the row was inserted, False if the key already existed
        """
        dialect = self.session.get_bind().dialect.name
        if dialect in ("postgresql", "sqlite"):
            insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = (
                insert_fn(self.model)
                .values(**values)
                .on_conflict_do_nothing(index_elements=list(conflict_columns))
            )
            result = await self.session.execute(stmt)
            return result.rowcount == 1

        try:
            async with self.session.begin_nested():
                await self.session.execute(insert(self.model).values(**values))
        except IntegrityError:
            return False
        return True
