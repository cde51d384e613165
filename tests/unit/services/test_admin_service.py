from datetime import datetime
from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy.exc import IntegrityError

from taxroll_archive.core.exceptions import NoFieldsProvidedError, NotFoundError, UnknownTableError, ValidationError
from taxroll_archive.database.models import County, Page
from taxroll_archive.services.admin_service import AdminService, get_entity_config


@pytest.fixture
def repository() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(mock_session, repository) -> AdminService:
    service = AdminService(mock_session)
    service.audit = AsyncMock()
    service.lookups = AsyncMock()
    service._repository = Mock(return_value=repository)
    return service


class TestEntityConfig:

    def test_unknown_table(self):
        with pytest.raises(UnknownTableError) as exc_info:
            get_entity_config("app_users")

        assert exc_info.value.code == "unknown_table"
        assert exc_info.value.status_code == 404

    def test_only_writable_fields_are_kept(self):
        values = get_entity_config("counties").writable_values({"name": "Chatham", "id": 99, "created_at": "x"})

        assert values == {"name": "Chatham"}

    def test_typed_fields(self):
        values = get_entity_config("pages").writable_values(
            {"source_item_id": "4", "captured_at": "1863-04-01T00:00:00", "needs_review": "true"}
        )

        assert values == {"source_item_id": 4, "captured_at": datetime(1863, 4, 1), "needs_review": True}

    def test_wrong_type(self):
        with pytest.raises(ValidationError) as exc_info:
            get_entity_config("districts").writable_values({"county_id": "Chatham"})

        assert exc_info.value.code == "invalid_field"

    @pytest.mark.parametrize("payload", [{}, None, {"bogus": 1}])
    def test_no_fields(self, payload):
        with pytest.raises(NoFieldsProvidedError) as exc_info:
            get_entity_config("sources").writable_values(payload)

        assert exc_info.value.code == "no_fields_provided"

    def test_explicit_null_counts_as_provided(self):
        assert get_entity_config("counties").writable_values({"notes": None}) == {"notes": None}


class TestMutations:

    @pytest.mark.asyncio
    async def test_create_audits_new_row(self, service, repository, mock_session, actor):
        repository.create.return_value = County(id=3, name="Chatham", state="GA", enabled=True)

        created = await service.create_record("counties", {"name": "Chatham", "state": "GA"}, actor)

        assert created["id"] == 3
        repository.create.assert_awaited_once_with(name="Chatham", state="GA")
        service.audit.record.assert_awaited_once_with(actor, "create", "counties", 3, None, created)
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_audits_before_and_after(self, service, repository, actor):
        before = County(id=3, name="Chatam", state="GA", enabled=True)
        repository.get_by_id.return_value = before
        repository.update.return_value = County(id=3, name="Chatham", state="GA", enabled=True)

        after = await service.update_record("counties", 3, {"name": "Chatham"}, actor)

        assert after["name"] == "Chatham"
        args = service.audit.record.await_args.args
        assert args[1:4] == ("update", "counties", 3)
        assert args[4]["name"] == "Chatam"
        assert args[5]["name"] == "Chatham"

    @pytest.mark.asyncio
    async def test_update_missing_row(self, service, repository, actor):
        repository.get_by_id.return_value = None

        with pytest.raises(NotFoundError):
            await service.update_record("counties", 404, {"name": "Chatham"}, actor)

        service.audit.record.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_without_fields_never_reaches_store(self, service, repository, actor):
        with pytest.raises(NoFieldsProvidedError):
            await service.update_record("counties", 3, {"id": 4}, actor)

        repository.get_by_id.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_audits_old_row(self, service, repository, actor):
        repository.get_by_id.return_value = Page(id=11, source_item_id=1, county_id=5)

        await service.delete_record("pages", 11, actor)

        repository.delete.assert_awaited_once_with(11)
        args = service.audit.record.await_args.args
        assert args[1:4] == ("delete", "pages", 11)
        assert args[4]["county_id"] == 5
        assert args[5] is None

    @pytest.mark.asyncio
    async def test_constraint_violation(self, service, repository, mock_session, actor):
        repository.get_by_id.return_value = County(id=3, name="Chatham")
        repository.delete.side_effect = IntegrityError("DELETE", {}, Exception("still referenced"))

        with pytest.raises(ValidationError) as exc_info:
            await service.delete_record("counties", 3, actor)

        assert exc_info.value.code == "constraint_violation"
        mock_session.rollback.assert_awaited_once()
        service.audit.record.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_table_on_delete(self, service, actor):
        with pytest.raises(UnknownTableError):
            await service.delete_record("audit_log", 1, actor)


class TestListing:

    @pytest.mark.asyncio
    async def test_list_records_snapshots(self, service, repository):
        repository.list_recent.return_value = [County(id=3, name="Chatham")]

        rows = await service.list_records("counties")

        assert rows[0]["name"] == "Chatham"
        repository.list_recent.assert_awaited_once_with(200)

    @pytest.mark.asyncio
    async def test_list_districts_by_county(self, service):
        service.lookups.list_districts.return_value = []

        await service.list_districts(county_id=5)

        service.lookups.list_districts.assert_awaited_once_with(county_id=5)
