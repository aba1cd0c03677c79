from typing import Generic, TypeVar, Type, List, Optional, Any, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from venue_jobs.core.database import Base
from venue_jobs.core.logging import get_logger

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository class with common CRUD operations."""

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session
        self.logger = get_logger(self.__class__.__name__)

    async def get_by_id(self, id: Any) -> Optional[ModelType]:
        """Get a record by ID, refreshing any copy already in the session."""
        try:
            query = (
                select(self.model)
                .where(self.model.id == id)
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(query)
            return result.scalars().first()
        except Exception as e:
            self.logger.error(f"Error getting {self.model.__name__} by ID {id}: {e}")
            raise

    async def get_many_by_ids(self, ids: List[Any]) -> List[ModelType]:
        """Get all records whose ID is in ``ids``."""
        if not ids:
            return []
        try:
            query = select(self.model).where(self.model.id.in_(ids))
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            self.logger.error(f"Error getting {self.model.__name__} by IDs: {e}")
            raise

    async def create(self, obj_data: Dict[str, Any]) -> ModelType:
        """Create a new record."""
        try:
            db_obj = self.model(**obj_data)
            self.session.add(db_obj)
            await self.session.flush()
            await self.session.refresh(db_obj)
            return db_obj
        except Exception as e:
            self.logger.error(f"Error creating {self.model.__name__}: {e}")
            await self.session.rollback()
            raise

    async def update(self, id: Any, obj_data: Dict[str, Any]) -> Optional[ModelType]:
        """Update a record by ID. ``None`` values are written as NULL."""
        try:
            if not obj_data:
                return await self.get_by_id(id)

            query = update(self.model).where(self.model.id == id).values(**obj_data)
            await self.session.execute(query)

            return await self.get_by_id(id)
        except Exception as e:
            self.logger.error(f"Error updating {self.model.__name__} with ID {id}: {e}")
            await self.session.rollback()
            raise
