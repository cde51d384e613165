"""Generic admin table maintenance.

The editable tables form a closed set. Each ``EntityConfig`` names its model
and the writable fields with their types; one handler serves them all.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, create_model
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taxroll_archive.core.database import Base, unit_of_work
from taxroll_archive.core.exceptions import (
    NoFieldsProvidedError,
    NotFoundError,
    UnknownTableError,
    ValidationError,
)
from taxroll_archive.database.models import ArchiveRepository, County, District, Page, Source, SourceItem
from taxroll_archive.repositories.base_repository import BaseRepository, snapshot
from taxroll_archive.repositories.lookup_repository import LookupRepository
from taxroll_archive.services.audit_service import Actor, AuditLogWriter
from taxroll_archive.services.base_service import BaseService
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)

LIST_LIMIT = 200


@dataclass(frozen=True)
class EntityConfig:
    """One admin-editable table: its model and typed writable fields."""

    name: str
    model: Type[Base]
    fields: Dict[str, Any]
    payload_model: Type[BaseModel] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        payload_model = create_model(
            f"{self.model.__name__}AdminPayload",
            __config__=ConfigDict(extra="ignore"),
            **{name: (Optional[annotation], None) for name, annotation in self.fields.items()},
        )
        object.__setattr__(self, "payload_model", payload_model)

    def writable_values(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Typed values for the writable fields present in the payload.

        Raises:
            ValidationError: If a present field has the wrong type
            NoFieldsProvidedError: If no writable field is present
        """
        try:
            parsed = self.payload_model.model_validate(payload or {})
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise ValidationError(f"{location}: {first['msg']}", code="invalid_field") from e

        values = {name: getattr(parsed, name) for name in parsed.model_fields_set}
        if not values:
            raise NoFieldsProvidedError(self.name)
        return values


ENTITY_CONFIGS: Dict[str, EntityConfig] = {
    config.name: config
    for config in (
        EntityConfig("counties", County, {"name": str, "state": str, "enabled": bool, "notes": str}),
        EntityConfig(
            "districts",
            District,
            {"county_id": int, "name": str, "type": str, "enabled": bool, "notes": str},
        ),
        EntityConfig("repositories", ArchiveRepository, {"name": str, "location": str, "url": str, "notes": str}),
        EntityConfig(
            "sources",
            Source,
            {
                "repository_id": int,
                "title": str,
                "county_id": int,
                "year": int,
                "format": str,
                "call_number": str,
                "microfilm_roll": str,
                "citation_preferred": str,
                "rights": str,
                "notes": str,
            },
        ),
        EntityConfig("source_items", SourceItem, {"source_id": int, "label": str, "date_range": str, "notes": str}),
        EntityConfig(
            "pages",
            Page,
            {
                "source_item_id": int,
                "county_id": int,
                "district_id": int,
                "page_number_label": str,
                "image_url": str,
                "image_thumbnail_url": str,
                "captured_at": datetime,
                "needs_review": bool,
                "notes": str,
            },
        ),
    )
}


def get_entity_config(table: str) -> EntityConfig:
    config = ENTITY_CONFIGS.get(table)
    if config is None:
        raise UnknownTableError(table)
    return config


def _constraint_error(table: str, error: IntegrityError) -> ValidationError:
    LOGGER.warning(f"Constraint violation on {table}: {error.orig}")
    return ValidationError(f"The {table} change violates a database constraint", code="constraint_violation")


class AdminService(BaseService):
    """List, create, update and delete rows of the admin tables, with audit."""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.lookups = LookupRepository(session)
        self.audit = AuditLogWriter(session)

    def _repository(self, config: EntityConfig) -> BaseRepository:
        return BaseRepository(self.session, config.model)

    async def list_counties(self) -> List[Dict[str, Any]]:
        counties = await self.execute(self.lookups.list_counties)
        return [snapshot(county) for county in counties]

    async def list_districts(self, county_id: Optional[int] = None) -> List[Dict[str, Any]]:
        districts = await self.execute(self.lookups.list_districts, county_id=county_id)
        return [snapshot(district) for district in districts]

    async def list_records(self, table: str) -> List[Dict[str, Any]]:
        """Newest rows of an admin table."""
        config = get_entity_config(table)
        records = await self.execute(self._repository(config).list_recent, LIST_LIMIT)
        return [snapshot(record) for record in records]

    async def create_record(self, table: str, payload: Dict[str, Any], actor: Actor) -> Dict[str, Any]:
        """Insert a row from the writable fields present in the payload.

        Raises:
            UnknownTableError: If the table is not editable
            NoFieldsProvidedError: If the payload has no writable field
        """
        config = get_entity_config(table)
        values = config.writable_values(payload)
        return await self.execute(self._create_record, config, values, actor)

    async def update_record(self, table: str, record_id: int, payload: Dict[str, Any], actor: Actor) -> Dict[str, Any]:
        config = get_entity_config(table)
        values = config.writable_values(payload)
        return await self.execute(self._update_record, config, record_id, values, actor)

    async def delete_record(self, table: str, record_id: int, actor: Actor) -> None:
        config = get_entity_config(table)
        await self.execute(self._delete_record, config, record_id, actor)

    async def _create_record(self, config: EntityConfig, values: Dict[str, Any], actor: Actor) -> Dict[str, Any]:
        try:
            async with unit_of_work(self.session):
                record = await self._repository(config).create(**values)
                created = snapshot(record)
                await self.audit.record(actor, "create", config.name, record.id, None, created)
        except IntegrityError as e:
            raise _constraint_error(config.name, e) from e

        LOGGER.info(f"Created {config.name} row", extra={"record_id": created["id"], "actor_user_id": actor.user_id})
        return created

    async def _update_record(
        self,
        config: EntityConfig,
        record_id: int,
        values: Dict[str, Any],
        actor: Actor,
    ) -> Dict[str, Any]:
        repository = self._repository(config)
        try:
            async with unit_of_work(self.session):
                record = await repository.get_by_id(record_id)
                if record is None:
                    raise NotFoundError(f"{config.name} {record_id} not found")

                before = snapshot(record)
                record = await repository.update(record, **values)
                after = snapshot(record)
                await self.audit.record(actor, "update", config.name, record_id, before, after)
        except IntegrityError as e:
            raise _constraint_error(config.name, e) from e

        LOGGER.info(f"Updated {config.name} row", extra={"record_id": record_id, "fields": sorted(values)})
        return after

    async def _delete_record(self, config: EntityConfig, record_id: int, actor: Actor) -> None:
        repository = self._repository(config)
        try:
            async with unit_of_work(self.session):
                record = await repository.get_by_id(record_id)
                if record is None:
                    raise NotFoundError(f"{config.name} {record_id} not found")

                before = snapshot(record)
                await repository.delete(record_id)
                await self.audit.record(actor, "delete", config.name, record_id, before, None)
        except IntegrityError as e:
            raise _constraint_error(config.name, e) from e

        LOGGER.info(f"Deleted {config.name} row", extra={"record_id": record_id, "actor_user_id": actor.user_id})
