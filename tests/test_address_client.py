"""
Tests for the adaptive address client: server-first writes with a local copy
under ``addresses_<userId>``.
"""

from unittest.mock import MagicMock

import pytest
import requests

from cleancare.client import AdaptiveAddressClient, ApiResponse, LocalStore
from cleancare.client.address_client import (
    addresses_key,
    backend_address,
    deletions_key,
    transform_backend_address,
)

KEY = addresses_key("user_9876543210")


def _offline():
    return ApiResponse(success=False, error="Connection refused", exception=requests.ConnectionError("refused"))


def _rejected(message="Pincode is required"):
    response = requests.Response()
    response.status_code = 400
    return ApiResponse(
        success=False,
        error=message,
        status_code=400,
        exception=requests.HTTPError(f"HTTP 400: {message}", response=response),
    )


def _record(address_id=5, **overrides):
    record = {
        "id": address_id,
        "title": "Home",
        "full_address": "12, MG Road, Bengaluru",
        "area": "MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560001",
        "landmark": "Near metro",
        "address_type": "home",
        "contact_phone": "9876543210",
        "is_default": True,
        "status": "active",
        "coordinates": {"lat": 12.97, "lng": 77.59},
        "created_at": "2026-03-01T09:00:00",
    }
    record.update(overrides)
    return record


def _saved(record):
    return ApiResponse(success=True, data={"data": record, "error": None}, status_code=201)


def _address(**overrides):
    address = {
        "label": "Home",
        "type": "home",
        "fullAddress": "12, MG Road, Bengaluru",
        "street": "MG Road",
        "city": "Bengaluru",
        "pincode": "560001",
        "phone": "9876543210",
    }
    address.update(overrides)
    return address


@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path / "store.json")


@pytest.fixture
def api():
    return MagicMock()


@pytest.fixture
def addresses(api, store):
    return AdaptiveAddressClient(api, store, "9876543210", clock=lambda: 1_700_000_000.0)


class TestHelpers:

    def test_transform(self):
        address = transform_backend_address(_record())
        assert address["id"] == "5"
        assert address["serverId"] == 5
        assert address["flatNo"] == "12"
        assert address["label"] == "Home"
        assert address["isDefault"] is True
        assert address["coordinates"] == {"lat": 12.97, "lng": 77.59}

    def test_backend_body(self):
        body = backend_address(_address(coordinates={"lat": 1.0, "lng": 2.0}))
        assert body["title"] == "Home"
        assert body["full_address"] == "12, MG Road, Bengaluru"
        assert body["area"] == "MG Road"
        assert body["state"] == "India"
        assert body["coordinates"] == {"lat": 1.0, "lng": 2.0}
        assert "landmark" not in body


class TestGetUserAddresses:

    def test_server_list_refreshes_local_copy(self, addresses, api, store):
        api.get.return_value = ApiResponse(success=True, data={"data": [_record()], "error": None})

        result = addresses.get_user_addresses()

        api.get.assert_called_once_with("/addresses")
        assert result["source"] == "server"
        assert [a["id"] for a in result["data"]] == ["5"]
        assert store.get(KEY) == result["data"]

    def test_offline_uses_local_copy(self, addresses, api, store):
        store.set(KEY, [{"id": "addr_1", "fullAddress": "Somewhere"}])
        api.get.return_value = _offline()

        result = addresses.get_user_addresses()
        assert result == {"success": True, "data": [{"id": "addr_1", "fullAddress": "Somewhere"}], "source": "local"}

    def test_unsent_changes_survive_refresh(self, addresses, api, store):
        api.post.return_value = _offline()
        local_id = addresses.save_address(_address(label="Office", type="work"))["data"]["id"]

        api.get.return_value = ApiResponse(success=True, data={"data": [_record()], "error": None})
        result = addresses.get_user_addresses()

        assert [a["id"] for a in result["data"]] == ["5", local_id]


class TestSaveAddress:

    def test_online_create(self, addresses, api, store):
        api.post.return_value = _saved(_record(7))

        result = addresses.save_address(_address())

        assert api.post.call_args.args == ("/addresses",)
        assert result["synced"] is True
        assert result["message"] == "Address saved successfully"
        assert [a["serverId"] for a in store.get(KEY)] == [7]

    def test_online_update_uses_put(self, addresses, api):
        api.put.return_value = _saved(_record(7, title="New home"))

        result = addresses.save_address(_address(id="7", serverId=7, label="New home"))

        assert api.put.call_args.args == ("/addresses/7",)
        assert result["data"]["label"] == "New home"

    def test_offline_saves_locally(self, addresses, api, store):
        api.post.return_value = _offline()

        result = addresses.save_address(_address())

        assert result["success"] is True
        assert result["synced"] is False
        assert result["message"] == "Address saved locally (will sync when online)"
        saved = store.get(KEY)[0]
        assert saved["id"].startswith("addr_1700000000000_")
        assert saved["pendingSync"] is True
        assert saved["status"] == "active"

    def test_rejected_is_not_saved(self, addresses, api, store):
        api.post.return_value = _rejected()

        result = addresses.save_address(_address(pincode=""))

        assert result == {"success": False, "error": "Pincode is required"}
        assert store.get(KEY) is None


class TestDeleteAddress:

    def test_online(self, addresses, api, store):
        store.set(KEY, [transform_backend_address(_record())])
        api.delete.return_value = ApiResponse(success=True, data={"data": {"message": "Address deleted successfully"}})

        result = addresses.delete_address("5")

        api.delete.assert_called_once_with("/addresses/5")
        assert result == {"success": True, "message": "Address deleted successfully"}
        assert store.get(KEY) == []

    def test_offline_queues_deletion(self, addresses, api, store):
        store.set(KEY, [transform_backend_address(_record())])
        api.delete.return_value = _offline()

        result = addresses.delete_address("5")

        assert result["message"] == "Address deleted locally (will sync when online)"
        assert store.get(KEY) == []
        assert store.get(deletions_key("user_9876543210")) == [5]

        # The server still lists it until the deletion is sent
        api.get.return_value = ApiResponse(success=True, data={"data": [_record()], "error": None})
        assert addresses.get_user_addresses()["data"] == []

    def test_local_only_address(self, addresses, api, store):
        api.post.return_value = _offline()
        local_id = addresses.save_address(_address())["data"]["id"]

        assert addresses.delete_address(local_id)["success"] is True
        api.delete.assert_not_called()
        assert store.get(KEY) == []

    def test_unknown(self, addresses, api):
        assert addresses.delete_address("addr_missing") == {"success": False, "error": "No addresses found"}


class TestSyncPending:

    def test_sends_offline_changes(self, addresses, api, store):
        store.set(KEY, [transform_backend_address(_record(5))])
        api.delete.return_value = _offline()
        addresses.delete_address("5")
        api.post.return_value = _offline()
        local_id = addresses.save_address(_address(label="Office"))["data"]["id"]

        api.delete.return_value = ApiResponse(success=True, data={})
        api.post.return_value = _saved(_record(9, title="Office"))
        report = addresses.sync_pending()

        assert report.synced == ["5", "9"]
        assert addresses.pending_deletions() == []
        local = store.get(KEY)
        assert [a["id"] for a in local] == ["9"]
        assert local_id not in [a["id"] for a in local]
        assert "pendingSync" not in local[0]

    def test_still_offline_keeps_changes(self, addresses, api, store):
        api.post.return_value = _offline()
        local_id = addresses.save_address(_address())["data"]["id"]

        report = addresses.sync_pending()

        assert report.deferred == [local_id]
        assert store.get(KEY)[0]["pendingSync"] is True

    def test_rejected_change_is_dropped(self, addresses, api, store):
        api.post.return_value = _offline()
        local_id = addresses.save_address(_address(pincode="12"))["data"]["id"]

        api.post.return_value = _rejected("Please enter a valid 6-digit pincode")
        report = addresses.sync_pending()

        assert report.failed == [local_id]
        saved = store.get(KEY)[0]
        assert saved["pendingSync"] is False
        assert saved["syncError"] == "REQUEST_REJECTED"
