"""
Base CRUD Repository Pattern
Generic repository with common database operations
"""

from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.sql import func as sql_func
import structlog

from pms_api.core.database import Base

logger = structlog.get_logger()

ModelType = TypeVar("ModelType", bound=Base)


class CRUDBase(Generic[ModelType]):
    """
    Base CRUD repository with generic database operations
    """

    def __init__(self, model: Type[ModelType]):
        """
        Initialize CRUD repository

        Args:
            model: SQLAlchemy model class
        """
        self.model = model

    async def get(
        self,
        db: AsyncSession,
        id: Union[UUID, str, int],
        include_deleted: bool = False
    ) -> Optional[ModelType]:
        """
        Get a single record by ID

        Args:
            db: Database session
            id: Record ID
            include_deleted: Include soft-deleted records

        Returns:
            Model instance or None
        """
        try:
            query = select(self.model).where(self.model.id == id)

            if hasattr(self.model, 'is_deleted') and not include_deleted:
                query = query.where(self.model.is_deleted == False)  # noqa: E712

            result = await db.execute(query)
            record = result.scalar_one_or_none()

            if record:
                logger.debug("Record retrieved", model=self.model.__name__, id=str(id))
            else:
                logger.debug("Record not found", model=self.model.__name__, id=str(id))

            return record

        except Exception as e:
            logger.error("Error retrieving record", model=self.model.__name__, id=str(id), error=str(e))
            raise

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in_data: Dict[str, Any],
        commit: bool = True
    ) -> ModelType:
        """
        Create a new record

        Args:
            db: Database session
            obj_in_data: Column values
            commit: Whether to commit the transaction

        Returns:
            Created model instance
        """
        try:
            db_obj = self.model(**obj_in_data)
            db.add(db_obj)

            if commit:
                await db.commit()
                await db.refresh(db_obj)
            else:
                await db.flush()

            logger.info("Record created", model=self.model.__name__, id=str(db_obj.id))
            return db_obj

        except Exception as e:
            if commit:
                await db.rollback()
            logger.error("Error creating record", model=self.model.__name__, error=str(e))
            raise

    async def delete(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        soft_delete: bool = True,
        commit: bool = True
    ) -> ModelType:
        """
        Delete a record (soft delete when the model supports it)

        Args:
            db: Database session
            db_obj: Record to delete
            soft_delete: Use soft delete if model supports it
            commit: Whether to commit the transaction

        Returns:
            Deleted model instance
        """
        try:
            soft = soft_delete and hasattr(db_obj, 'is_deleted')
            if soft:
                db_obj.is_deleted = True
                db_obj.deleted_at = sql_func.now()
                db.add(db_obj)
            else:
                await db.delete(db_obj)

            if commit:
                await db.commit()
            else:
                await db.flush()

            logger.info("Record deleted", model=self.model.__name__, id=str(db_obj.id), soft_delete=soft)
            return db_obj

        except Exception as e:
            if commit:
                await db.rollback()
            logger.error("Error deleting record", model=self.model.__name__, id=str(db_obj.id), error=str(e))
            raise
