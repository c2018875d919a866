"""Tests for app.addresses and /addresses routes."""
import pytest

from app.addresses import create_address, delete_address, get_primary_address, list_addresses, set_primary_address
from app.errors import ConflictError, NotFoundError

ADDRESS = dict(street="Elm St", number="7", neighborhood="Norte", city="Springfield",
               state="IL", postal_code="62702", country="US")


class TestAddresses:
    def test_first_address_becomes_default(self, db, client_user):
        first = create_address(db, client_user.id, **ADDRESS)
        second = create_address(db, client_user.id, **ADDRESS)
        assert first.is_default is True
        assert second.is_default is False

    def test_explicit_default_clears_others(self, db, client_user):
        first = create_address(db, client_user.id, **ADDRESS)
        second = create_address(db, client_user.id, is_default=True, **ADDRESS)

        db.refresh(first)
        assert first.is_default is False
        assert get_primary_address(db, client_user.id).id == second.id

    def test_set_primary_and_listing_order(self, db, client_user):
        first = create_address(db, client_user.id, **ADDRESS)
        second = create_address(db, client_user.id, **ADDRESS)

        set_primary_address(db, second.id, client_user.id)

        assert [a.id for a in list_addresses(db, client_user.id)] == [second.id, first.id]

    def test_deleting_default_promotes_oldest(self, db, client_user):
        first = create_address(db, client_user.id, **ADDRESS)
        second = create_address(db, client_user.id, **ADDRESS)
        third = create_address(db, client_user.id, **ADDRESS)

        delete_address(db, first.id, client_user.id)

        assert get_primary_address(db, client_user.id).id == second.id
        assert {a.id for a in list_addresses(db, client_user.id)} == {second.id, third.id}

    def test_address_in_use_cannot_be_deleted(self, db, pending_request, address, client_user):
        with pytest.raises(ConflictError):
            delete_address(db, address.id, client_user.id)

    def test_ownership(self, db, address, other_client):
        with pytest.raises(NotFoundError):
            set_primary_address(db, address.id, other_client.id)


class TestAddressRoutes:
    def test_create_and_patch(self, client, client_user, auth_headers):
        headers = auth_headers(client_user)
        resp = client.post("/addresses", headers=headers, json=ADDRESS)
        assert resp.status_code == 201
        created = resp.json()
        assert created["is_default"] is True
        assert created["full_address"].startswith("Elm St 7")

        resp = client.patch(f"/addresses/{created['id']}", headers=headers, json={"apartment": "3B"})
        assert resp.json()["apartment"] == "3B"
        assert client.get("/addresses/primary", headers=headers).json()["id"] == created["id"]

        assert client.delete(f"/addresses/{created['id']}", headers=headers).status_code == 204
        assert client.get("/addresses/primary", headers=headers).status_code == 404
