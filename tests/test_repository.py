import logging
from datetime import datetime, timedelta, timezone

import pytest
from werkzeug.security import check_password_hash

from app.helpdesk.audit import AuditRecorder
from app.helpdesk.db import create_sql_engine
from app.helpdesk.entities import AuditAction, EntityKind, Role, TicketStatus
from app.helpdesk.errors import NotFound, StoreUnavailable, ValidationRejectedByStore
from app.helpdesk.models import Base
from app.helpdesk.repository import EntityRepository
from app.helpdesk.tables import SqlTableStore


class FailingAuditStore(SqlTableStore):
    def insert(self, table, values):
        if table == "audit_logs":
            raise StoreUnavailable()
        return super().insert(table, values)


@pytest.fixture()
def engine(tmp_path):
    engine = create_sql_engine(f"sqlite:///{tmp_path/'repo.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def repo(engine):
    store = SqlTableStore(engine=engine)
    return EntityRepository(store, AuditRecorder(store))


@pytest.fixture()
def admin(repo):
    return repo.create_user(
        {"name": "Ana Admin", "email": "ana@example.com", "password": "secret1", "role": Role.ADMIN},
        actor_id=None,
    )


def _client_fields(**overrides):
    fields = {
        "name": "Banco Central",
        "contact_person": "Carlos",
        "email": "carlos@example.com",
        "phone": "+55 21 5555-0000",
        "address": "Av. Rio Branco 1",
        "city": "Rio de Janeiro",
        "state": "RJ",
    }
    fields.update(overrides)
    return fields


def test_user_lookup_omits_password_and_ignores_case(repo, admin):
    assert admin.password_hash is None

    found = repo.get_user_by_email("ANA@Example.com")
    assert found is not None
    assert found.id == admin.id
    assert found.password_hash is None

    with_secret = repo.get_user_by_email("ana@example.com", include_password_hash=True)
    assert check_password_hash(with_secret.password_hash, "secret1")

    assert all(u.password_hash is None for u in repo.list_users())
    assert repo.get_user(admin.id).password_hash is None


def test_list_is_repeatable(repo, admin):
    repo.create_client(_client_fields(), actor_id=admin.id)
    repo.create_client(_client_fields(name="Agencia Norte"), actor_id=admin.id)
    first = repo.list_clients()
    assert [c.name for c in first] == ["Banco Central", "Agencia Norte"]
    assert repo.list_clients() == first


def test_ticket_gets_code_and_matching_timestamps(repo, admin):
    client = repo.create_client(_client_fields(), actor_id=admin.id)
    t1 = repo.create_ticket(
        {"title": "Printer jam", "description": "Tray 2", "client_id": client.id, "location": "Rio de Janeiro, RJ"},
        actor_id=admin.id,
    )
    t2 = repo.create_ticket(
        {"title": "No network", "description": "Switch down", "client_id": client.id, "location": "Rio de Janeiro, RJ"},
        actor_id=admin.id,
    )
    assert t1.code == "OS-000001"
    assert t2.code == "OS-000002"
    assert t1.status is TicketStatus.OPEN
    assert t1.updated_at == t1.created_at

    updated = repo.update_ticket(t1.id, {"status": TicketStatus.CLOSED}, actor_id=admin.id)
    assert updated.code == "OS-000001"
    assert updated.updated_at >= updated.created_at
    # newest first
    assert [t.id for t in repo.list_tickets()] == [t2.id, t1.id]


def test_update_appends_audit_entry_at_head(repo, admin):
    client = repo.create_client(_client_fields(), actor_id=admin.id)
    repo.update_client(client.id, {"phone": "+55 21 5555-9999"}, actor_id=admin.id)

    entries = repo.list_audit_logs()
    head = entries[0]
    assert head.action is AuditAction.UPDATE
    assert head.entity == "Client"
    assert head.entity_id == client.id
    assert head.user_id == admin.id
    assert head.details == "Client 'Banco Central' updated."
    assert entries[1].action is AuditAction.CREATE


def test_delete_missing_record_is_false_without_audit(repo, admin):
    before = len(repo.list_audit_logs())
    assert repo.delete_client("does-not-exist", actor_id=admin.id) is False
    assert len(repo.list_audit_logs()) == before


def test_update_missing_record_raises_not_found(repo, admin):
    with pytest.raises(NotFound):
        repo.update_client("does-not-exist", {"phone": "1"}, actor_id=admin.id)


def test_empty_patch_is_a_noop(repo, admin):
    client = repo.create_client(_client_fields(), actor_id=admin.id)
    before = len(repo.list_audit_logs())
    assert repo.update_client(client.id, {}, actor_id=admin.id).id == client.id
    assert len(repo.list_audit_logs()) == before


def test_duplicate_email_rejected(repo, admin):
    with pytest.raises(ValidationRejectedByStore):
        repo.create_user(
            {"name": "Other", "email": "ANA@example.com", "password": "x", "role": Role.MANAGER},
            actor_id=admin.id,
        )


def test_unknown_and_readonly_fields_rejected(repo, admin):
    with pytest.raises(ValueError):
        repo.create_client(_client_fields(nickname="x"), actor_id=admin.id)
    with pytest.raises(ValueError):
        repo.update_user(admin.id, {"password": "new"}, actor_id=admin.id)


def test_client_with_tickets_cannot_be_deleted(repo, admin):
    client = repo.create_client(_client_fields(), actor_id=admin.id)
    repo.create_ticket({"title": "T", "description": "D", "client_id": client.id}, actor_id=admin.id)
    with pytest.raises(ValidationRejectedByStore):
        repo.delete_client(client.id, actor_id=admin.id)
    assert repo.get_client(client.id) is not None


def test_missing_actor_skips_audit(repo, caplog):
    with caplog.at_level(logging.WARNING, logger="app.helpdesk.audit"):
        client = repo.create_client(_client_fields(), actor_id=None)
    assert repo.get_client(client.id) is not None
    assert repo.list_audit_logs() == []
    assert "no authenticated actor" in caplog.text


def test_audit_failure_does_not_fail_mutation(engine, caplog):
    store = FailingAuditStore(engine=engine)
    repo = EntityRepository(store, AuditRecorder(store))
    with caplog.at_level(logging.ERROR, logger="app.helpdesk.audit"):
        client = repo.create_client(_client_fields(), actor_id="someone")
    assert repo.get_client(client.id).name == "Banco Central"
    assert "Audit append failed" in caplog.text


def test_audited_entity_resolves_until_deleted(repo, admin):
    client = repo.create_client(_client_fields(), actor_id=admin.id)
    entry = repo.list_audit_logs()[0]
    assert repo.get_audited_entity(entry).id == client.id

    assert repo.delete(EntityKind.CLIENT, client.id, actor_id=admin.id) is True
    assert repo.get_audited_entity(entry) is None
    head = repo.list_audit_logs()[0]
    assert head.action is AuditAction.DELETE
    assert head.details == "Client 'Banco Central' deleted."


def test_audit_entry_lookup_by_id(repo, admin):
    repo.create_client(_client_fields(), actor_id=admin.id)
    head = repo.list_audit_logs()[0]
    assert repo.get_audit_log(head.id) == head
    assert repo.get_audit_log("missing") is None
    assert repo.get_audit_log("") is None


def test_store_timestamps_are_naive_utc(repo, admin):
    before = datetime.now(timezone.utc).replace(tzinfo=None)
    client = repo.create_client(_client_fields(), actor_id=admin.id)
    after = datetime.now(timezone.utc).replace(tzinfo=None)
    assert client.created_at.tzinfo is None
    assert before - timedelta(seconds=1) <= client.created_at <= after + timedelta(seconds=1)
