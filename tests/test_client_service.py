import pytest

from database.models import Client, ClientCase, ClientDocument, ServeAttempt
from services.clients.client_service import (
    ClientNotFoundError,
    create_client,
    delete_client_cascade,
    get_all_clients,
    get_client_by_id,
    update_client,
)
from services.clients.dto import ClientCreateCommand, ClientUpdateCommand
from services.validators import ValidationError

pytestmark = pytest.mark.usefixtures("in_memory_db")


def test_create_client_normalizes_fields():
    client = create_client(
        ClientCreateCommand(
            name="  Jane   Doe ",
            email=" jane@example.com ",
            additional_emails=("office@example.com",),
            phone="(555) 123-4567",
            address="12 Main Street",
        )
    )
    assert client.id
    assert client.name == "Jane Doe"
    assert client.email == "jane@example.com"
    assert client.phone == "5551234567"
    assert client.additional_emails == ["office@example.com"]
    assert Client.select().count() == 1


def test_create_client_uses_given_id():
    client = create_client(ClientCreateCommand(name="Jane Doe", id="client-42"))
    assert client.id == "client-42"
    assert get_client_by_id("client-42").name == "Jane Doe"


def test_create_client_invalid_email_inserts_nothing():
    with pytest.raises(ValidationError):
        create_client(ClientCreateCommand(name="Jane Doe", email="nope"))
    assert Client.select().count() == 0


def test_create_client_duplicate_additional_email():
    with pytest.raises(ValidationError, match="already added"):
        create_client(
            ClientCreateCommand(
                name="Jane Doe",
                email="jane@example.com",
                additional_emails=("jane@example.com",),
            )
        )


def test_update_client_keeps_id_and_other_fields(make_client):
    make_client("c1", name="Jane Doe", email="jane@example.com", phone="5551234567")

    updated = update_client(ClientUpdateCommand(id="c1", email="jane.doe@example.com"))

    assert updated.id == "c1"
    assert updated.name == "Jane Doe"
    assert updated.email == "jane.doe@example.com"
    assert updated.phone == "5551234567"
    assert Client.get_by_id("c1").email == "jane.doe@example.com"


def test_update_client_revalidates_additional_emails(make_client):
    make_client("c1", email="jane@example.com", additional_emails=["a@example.com"])
    with pytest.raises(ValidationError):
        update_client(ClientUpdateCommand(id="c1", email="a@example.com"))
    assert Client.get_by_id("c1").email == "jane@example.com"


def test_update_missing_client_raises():
    with pytest.raises(ClientNotFoundError):
        update_client(ClientUpdateCommand(id="missing", name="Someone"))


def test_get_all_clients_sorted_by_name(make_client):
    make_client("c2", name="Zed")
    make_client("c1", name="Amy")
    assert [c.name for c in get_all_clients()] == ["Amy", "Zed"]


def test_delete_client_cascade_removes_everything(
    make_client, make_serve, make_case, make_document, fake_storage
):
    make_client("c1")
    make_client("c2", name="Other")
    make_serve("s1", client_id="c1")
    make_serve("s2", client_id="c1", minutes=5)
    make_serve("s3", client_id="c2")
    make_case("case1", client_id="c1")
    make_document("d1", client_id="c1")

    result = delete_client_cascade(fake_storage, "c1")

    assert result.complete
    assert result.deleted == {
        "serve_attempts": 2,
        "documents": 1,
        "cases": 1,
        "clients": 1,
    }
    assert fake_storage.removed == ["c1/d1.pdf"]
    assert [s.id for s in ServeAttempt.select()] == ["s3"]
    assert ClientDocument.select().count() == 0
    assert ClientCase.select().count() == 0
    assert [c.id for c in Client.select()] == ["c2"]


def test_delete_client_cascade_keeps_document_row_when_blob_fails(
    make_client, make_document, fake_storage
):
    make_client("c1")
    make_document("d1", client_id="c1")
    make_document("d2", client_id="c1")
    fake_storage.fail_remove.add("c1/d1.pdf")

    result = delete_client_cascade(fake_storage, "c1")

    assert result.client_deleted
    assert not result.complete
    assert [(f.step, f.item_id) for f in result.failures] == [("documents", "d1")]
    assert [d.id for d in ClientDocument.select()] == ["d1"]
    assert "1 step(s) failed" in result.summary()


def test_delete_client_cascade_unknown_client(make_client, fake_storage):
    make_client("c1")

    result = delete_client_cascade(fake_storage, "missing")

    assert not result.client_deleted
    assert result.deleted["clients"] == 0
    assert [(f.step, f.item_id) for f in result.failures] == [("clients", "missing")]
    assert [c.id for c in Client.select()] == ["c1"]
