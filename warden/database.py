"""MongoDB storage of warns."""

import functools
from datetime import datetime
from typing import Optional

from beanie import PydanticObjectId, init_beanie
from beanie.operators import Set
from bson.errors import InvalidId
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from warden.errors import DataAccessFault
from warden.models import InfractionRecord
from warden.moderation.models import Infraction

DOCUMENT_MODELS = [InfractionRecord]


async def init_database(uri: str, name: str) -> AsyncIOMotorClient:
    """Connects to MongoDB and registers the document models."""
    client = AsyncIOMotorClient(uri, tz_aware=True)
    await init_beanie(client[name], document_models=DOCUMENT_MODELS)

    logger.info("Database initialized")
    return client


def _data_access(func):
    """Turns driver errors raised by `func` into `DataAccessFault`."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as error:
            raise DataAccessFault(f"{func.__name__} failed: {error}") from error

    return wrapper


def _object_id(infraction_id: str) -> Optional[PydanticObjectId]:
    try:
        return PydanticObjectId(infraction_id)
    except (InvalidId, TypeError):
        return None


class MongoInfractionStore:
    """Warn storage backed by the `infractions` collection."""

    @_data_access
    async def insert(self, infraction: Infraction) -> str:
        record = InfractionRecord.from_infraction(infraction)
        await record.insert()

        logger.trace(f"Inserted warn #{record.id} for user {record.subject_id}.")
        return str(record.id)

    @_data_access
    async def get_active(self, subject_id: int, since: datetime) -> list[Infraction]:
        records = (
            await InfractionRecord.find(
                InfractionRecord.subject_id == subject_id,
                InfractionRecord.discarded == False,  # noqa: E712 pylint: disable=singleton-comparison
                InfractionRecord.created_at >= since,
            )
            .sort("+created_at")
            .to_list()
        )
        return [record.to_infraction() for record in records]

    @_data_access
    async def get_all(self, subject_id: int) -> list[Infraction]:
        records = await InfractionRecord.find(InfractionRecord.subject_id == subject_id).sort("+created_at").to_list()
        return [record.to_infraction() for record in records]

    @_data_access
    async def find_by_id(self, infraction_id: str) -> Optional[Infraction]:
        object_id = _object_id(infraction_id)
        if object_id is None:
            return None

        record = await InfractionRecord.get(object_id)
        return record.to_infraction() if record else None

    @_data_access
    async def discard_by_id(self, infraction_id: str) -> None:
        object_id = _object_id(infraction_id)
        if object_id is None:
            return

        await InfractionRecord.find_one(InfractionRecord.id == object_id).update(
            Set({InfractionRecord.discarded: True})
        )

    @_data_access
    async def discard_all_by_subject(self, subject_id: int) -> None:
        await InfractionRecord.find(InfractionRecord.subject_id == subject_id).update(
            Set({InfractionRecord.discarded: True})
        )
