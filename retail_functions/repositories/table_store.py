import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, AsyncIterator, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from retail_functions.core.exceptions import EntityAlreadyExistsError, TableNotFoundError, TransientStoreError
from retail_functions.models.entity import StorageTable, TableEntity

logger = logging.getLogger(__name__)


def encode_properties(properties: Mapping[str, Any]) -> dict[str, Any]:
    """Make a property bag JSON-safe. Decimals are kept as strings so they round-trip exactly."""
    encoded: dict[str, Any] = {}
    for key, value in properties.items():
        if isinstance(value, Decimal):
            encoded[key] = str(value)
        elif isinstance(value, datetime):
            encoded[key] = value.isoformat()
        elif isinstance(value, Enum):
            encoded[key] = value.value
        else:
            encoded[key] = value
    return encoded


class TableStore:
    """Entity store keyed by (table, partition key, row key) with a free-form property bag."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def _store_errors(self, action: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise TransientStoreError(f"{action} failed: {type(e).__name__}: {e}") from e

    async def _require_table(self, table: str) -> None:
        if await self.session.get(StorageTable, table) is None:
            raise TableNotFoundError(table)

    async def ensure_exists(self, table: str) -> None:
        async with self._store_errors(f"Create table {table}"):
            if await self.session.get(StorageTable, table) is not None:
                return

            self.session.add(StorageTable(name=table))
            try:
                await self.session.commit()
            except IntegrityError:
                # created by a concurrent invocation
                await self.session.rollback()
                return

            logger.info(f"Created table {table}")

    async def get(self, table: str, partition_key: str, row_key: str) -> Optional[TableEntity]:
        async with self._store_errors(f"Read from {table}"):
            await self._require_table(table)
            return await self.session.get(TableEntity, (table, partition_key, row_key))

    async def query(self, table: str, partition_key: str, row_key: Optional[str] = None) -> List[TableEntity]:
        async with self._store_errors(f"Query {table}"):
            await self._require_table(table)

            stmt = select(TableEntity).where(
                TableEntity.table_name == table,
                TableEntity.partition_key == partition_key
            )
            if row_key is not None:
                stmt = stmt.where(TableEntity.row_key == row_key)

            result = await self.session.execute(stmt.order_by(TableEntity.row_key))
            return list(result.scalars().all())

    async def put(self, table: str, partition_key: str, row_key: str, properties: Mapping[str, Any]) -> TableEntity:
        async with self._store_errors(f"Upsert into {table}"):
            await self._require_table(table)

            entity = await self.session.get(TableEntity, (table, partition_key, row_key))
            if entity is None:
                entity = TableEntity(
                    table_name=table,
                    partition_key=partition_key,
                    row_key=row_key,
                    properties=encode_properties(properties)
                )
                self.session.add(entity)
            else:
                entity.properties = encode_properties(properties)
                entity.timestamp = datetime.now(timezone.utc)

            await self.session.commit()
            await self.session.refresh(entity)
            return entity

    async def add(self, table: str, partition_key: str, row_key: str, properties: Mapping[str, Any]) -> TableEntity:
        async with self._store_errors(f"Insert into {table}"):
            await self._require_table(table)

            if await self.session.get(TableEntity, (table, partition_key, row_key)) is not None:
                raise EntityAlreadyExistsError(table, partition_key, row_key)

            entity = TableEntity(
                table_name=table,
                partition_key=partition_key,
                row_key=row_key,
                properties=encode_properties(properties)
            )
            self.session.add(entity)
            try:
                await self.session.commit()
            except IntegrityError as e:
                await self.session.rollback()
                raise EntityAlreadyExistsError(table, partition_key, row_key) from e

            await self.session.refresh(entity)
            return entity
