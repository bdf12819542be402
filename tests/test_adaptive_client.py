"""
Tests for the local-first client: LocalStore, ApiClient, the adaptive booking
client and the adaptive auth client.
"""

from datetime import date
from unittest.mock import MagicMock

import pytest
import requests

from cleancare.client import (
    AdaptiveAuthClient,
    AdaptiveBookingClient,
    ApiClient,
    ApiResponse,
    LocalStore,
)
from cleancare.client.booking_client import (
    MAX_SYNC_BACKOFF,
    PENDING_KEY,
    SYNC_STATE_KEY,
    backend_payload,
    booking_key,
    delivery_date_for,
    merge_bookings,
    retry_delay,
    transform_backend_booking,
)
from cleancare.errors import RetryStrategy


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def _offline(message="Connection refused"):
    return ApiResponse(success=False, error=message, exception=requests.ConnectionError(message))


def _rejected(status_code=400, message="Missing required fields"):
    response = requests.Response()
    response.status_code = status_code
    return ApiResponse(
        success=False,
        error=message,
        status_code=status_code,
        exception=requests.HTTPError(f"HTTP {status_code}: {message}", response=response),
    )


def _created(order_id="A20260300001", server_id=11):
    return ApiResponse(
        success=True,
        data={"booking": {"id": server_id, "custom_order_id": order_id}},
        status_code=201,
    )


@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path / "store.json")


@pytest.fixture
def api():
    return MagicMock()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bookings(api, store, clock):
    return AdaptiveBookingClient(api, store, clock=clock)


def _booking_data(**overrides):
    data = {
        "userId": "9876543210",
        "services": ["Wash & Fold"],
        "totalAmount": 250,
        "pickupDate": "2026-03-14",
        "pickupTime": "10:00",
        "address": {
            "fullAddress": "12 MG Road, Bengaluru",
            "coordinates": {"lat": 12.9716, "lng": 77.5946},
        },
        "contactDetails": {"phone": "9876543210", "name": "Asha", "instructions": "Ring twice"},
    }
    data.update(overrides)
    return data


class TestLocalStore:

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "store.json"
        LocalStore(path).set("auth_token", "abc")
        assert LocalStore(path).get("auth_token") == "abc"

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")
        store = LocalStore(path)
        assert store.get("anything", "default") == "default"
        store.set("k", 1)
        assert store.get("k") == 1

    def test_delete(self, store):
        store.set("k", 1)
        assert store.delete("k") is True
        assert store.delete("k") is False
        assert "k" not in store.keys()


class TestApiClient:

    def test_success(self):
        session = MagicMock()
        session.request.return_value.ok = True
        session.request.return_value.status_code = 200
        session.request.return_value.json.return_value = {"bookings": []}
        client = ApiClient("http://api.test/api/", session=session)
        client.token = "tok"

        result = client.get("/bookings/customer/user_1", timeout=5)

        assert result.success is True
        assert result.data == {"bookings": []}
        args, kwargs = session.request.call_args
        assert args == ("GET", "http://api.test/api/bookings/customer/user_1")
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert kwargs["timeout"] == 5

    def test_http_error(self):
        session = MagicMock()
        session.request.return_value.ok = False
        session.request.return_value.status_code = 400
        session.request.return_value.json.return_value = {"detail": "Missing required fields"}
        result = ApiClient("http://api.test/api", session=session).post("/bookings", json={})

        assert result.success is False
        assert result.status_code == 400
        assert result.error == "Missing required fields"
        assert isinstance(result.exception, requests.HTTPError)

    def test_connection_error(self):
        session = MagicMock()
        session.request.side_effect = requests.ConnectionError("refused")
        result = ApiClient("http://api.test/api", session=session).get("/auth/me")

        assert result.success is False
        assert result.error == "refused"
        assert isinstance(result.exception, requests.ConnectionError)


class TestHelpers:

    def test_delivery_date(self):
        assert delivery_date_for("2026-03-31") == "2026-04-01"
        assert delivery_date_for(None, today=date(2026, 1, 5)) == "2026-01-05"
        assert delivery_date_for("soon", today=date(2026, 1, 5)) == "2026-01-05"

    def test_merge_local_wins_newest_first(self):
        local = [{"id": "a", "status": "pending", "createdAt": "2026-03-01T10:00:00+00:00"}]
        remote = [
            {"id": "a", "status": "confirmed", "createdAt": "2026-03-01T10:00:00+00:00"},
            {"id": "b", "status": "pending", "createdAt": "2026-03-02T10:00:00"},
            {"id": "c", "status": "pending", "createdAt": "2026-02-01T10:00:00Z"},
        ]
        merged = merge_bookings(local, remote)
        assert [b["id"] for b in merged] == ["b", "a", "c"]
        assert merged[1]["status"] == "pending"

    def test_transform_uses_client_reference(self):
        record = {
            "id": 7,
            "client_reference": "1700000000000_ab12cd34",
            "custom_order_id": "A20260300001",
            "services": ["Dry Clean"],
            "total_price": 300,
            "status": "confirmed",
            "scheduled_date": "2026-03-14",
            "scheduled_time": "11:00",
            "address": "12 MG Road",
            "customer": {"phone": "9876543210", "full_name": "Asha Rao"},
            "created_at": "2026-03-10T08:00:00",
        }
        booking = transform_backend_booking(record, "user_9876543210")
        assert booking["id"] == "1700000000000_ab12cd34"
        assert booking["deliveryDate"] == "2026-03-15"
        assert booking["contactDetails"]["name"] == "Asha Rao"
        assert booking["custom_order_id"] == "A20260300001"

        del record["client_reference"]
        assert transform_backend_booking(record, "user_9876543210")["id"] == "7"

    def test_backend_payload(self):
        payload = backend_payload({**_booking_data(), "id": "local-1", "userId": "user_9876543210"})
        assert payload["customer_id"] == "user_9876543210"
        assert payload["client_reference"] == "local-1"
        assert payload["address"] == "12 MG Road, Bengaluru"
        assert payload["coordinates"] == {"lat": 12.9716, "lng": 77.5946}
        assert payload["service_type"] == "home-service"
        assert payload["special_instructions"] == "Ring twice"
        assert payload["final_amount"] == 250.0


class TestCreateBooking:

    def test_online(self, bookings, api, store):
        api.post.return_value = _created()
        result = bookings.create_booking(_booking_data())

        assert result["success"] is True
        assert result["synced"] is True
        booking = result["booking"]
        assert booking["custom_order_id"] == "A20260300001"
        assert booking["userId"] == "user_9876543210"
        assert booking["deliveryDate"] == "2026-03-15"
        assert store.get(booking_key(booking["id"]))["custom_order_id"] == "A20260300001"
        assert bookings.pending_sync() == []

        path = api.post.call_args.args[0]
        kwargs = api.post.call_args.kwargs
        assert path == "/bookings"
        assert kwargs["timeout"] == 10
        assert kwargs["json"]["client_reference"] == booking["id"]

    def test_offline_saves_locally(self, bookings, api, store, clock):
        api.post.return_value = _offline()
        result = bookings.create_booking(_booking_data())

        assert result["success"] is True
        assert result["synced"] is False
        assert result["message"] == "Booking created (saved locally, will sync when online)"
        booking_id = result["booking"]["id"]
        assert bookings.pending_sync() == [booking_id]
        state = store.get(SYNC_STATE_KEY)[booking_id]
        assert state["attempts"] == 1
        assert state["next_attempt_at"] == clock.now + 3
        assert [b["id"] for b in bookings.local_bookings("9876543210")] == [booking_id]

    def test_rejected_is_not_queued(self, bookings, api, store):
        api.post.return_value = _rejected()
        result = bookings.create_booking(_booking_data())

        assert result["synced"] is False
        assert bookings.pending_sync() == []
        assert result["booking"]["syncError"] == "REQUEST_REJECTED"

    def test_duplicate_submission_refused(self, bookings, api):
        inner = {}

        def resubmit(*args, **kwargs):
            inner["result"] = bookings.create_booking(_booking_data())
            return _created()

        api.post.side_effect = resubmit
        outer = bookings.create_booking(_booking_data())

        assert outer["success"] is True
        assert inner["result"] == {
            "success": False,
            "error": "Booking is already being processed. Please wait.",
        }
        assert api.post.call_count == 1

    def test_guard_released_after_completion(self, bookings, api):
        api.post.return_value = _created()
        assert bookings.create_booking(_booking_data())["success"] is True
        assert bookings.create_booking(_booking_data())["success"] is True

    def test_item_prices_forwarded(self, bookings, api):
        api.post.return_value = _created()
        items = [{"service_name": "Shirt/T-Shirt", "quantity": 2, "unit_price": 90, "total_price": 180}]
        bookings.create_booking(_booking_data(), item_prices=items)
        assert api.post.call_args.kwargs["json"]["item_prices"] == items


class TestSyncPending:

    def test_waits_for_retry_delay_then_syncs(self, bookings, api, store, clock):
        api.post.return_value = _offline()
        booking_id = bookings.create_booking(_booking_data())["booking"]["id"]

        report = bookings.sync_pending()
        assert report.deferred == [booking_id]
        assert api.post.call_count == 1

        clock.now += 3
        api.post.return_value = _created("A20260300042")
        report = bookings.sync_pending()

        assert report.synced == [booking_id]
        assert bookings.pending_sync() == []
        assert store.get(SYNC_STATE_KEY) == {}
        assert store.get(booking_key(booking_id))["custom_order_id"] == "A20260300042"

    def test_offline_booking_stays_queued_until_online(self, bookings, api, store, clock):
        api.post.return_value = _offline()
        booking_id = bookings.create_booking(_booking_data())["booking"]["id"]

        clock.now += 3
        assert bookings.sync_pending().deferred == [booking_id]
        clock.now += 3
        assert bookings.sync_pending().deferred == [booking_id]
        assert api.post.call_count == 3

        # Budget spent: the wait doubles instead of the booking being dropped
        state = store.get(SYNC_STATE_KEY)[booking_id]
        assert state["attempts"] == 3
        assert state["next_attempt_at"] == clock.now + 6
        assert bookings.pending_sync() == [booking_id]

        clock.now += 3
        bookings.sync_pending()
        assert api.post.call_count == 3

        clock.now += 3
        api.post.return_value = _created("A20260300007")
        report = bookings.sync_pending()

        assert report.synced == [booking_id]
        assert bookings.pending_sync() == []
        assert "syncError" not in store.get(booking_key(booking_id))
        assert store.get(booking_key(booking_id))["custom_order_id"] == "A20260300007"

    def test_rejected_during_sync_leaves_queue(self, bookings, api, store, clock):
        api.post.return_value = _offline()
        booking_id = bookings.create_booking(_booking_data())["booking"]["id"]

        clock.now += 3
        api.post.return_value = _rejected(422, "Unprocessable")
        report = bookings.sync_pending()

        assert report.failed == [booking_id]
        assert store.get(PENDING_KEY) == []
        assert store.get(booking_key(booking_id))["syncError"] == "REQUEST_REJECTED"

    def test_queue_survives_restart(self, api, store, clock, tmp_path):
        api.post.return_value = _offline()
        booking_id = AdaptiveBookingClient(api, store, clock=clock).create_booking(_booking_data())["booking"]["id"]

        clock.now += 3
        api.post.return_value = _created()
        restarted = AdaptiveBookingClient(api, LocalStore(tmp_path / "store.json"), clock=clock)
        assert restarted.sync_pending().synced == [booking_id]


class TestGetUserBookings:

    def test_merges_server_bookings(self, bookings, api, store):
        api.post.return_value = _offline()
        local_id = bookings.create_booking(_booking_data())["booking"]["id"]

        api.get.return_value = ApiResponse(success=True, data={"bookings": [
            {
                "id": 1,
                "client_reference": local_id,
                "status": "confirmed",
                "scheduled_date": "2026-03-14",
                "created_at": "2026-03-01T09:00:00",
            },
            {
                "id": 2,
                "custom_order_id": "A20260300002",
                "status": "completed",
                "scheduled_date": "2026-02-01",
                "created_at": "2020-02-01T09:00:00",
            },
        ]})

        result = bookings.get_user_bookings("9876543210")

        assert result["source"] == "server"
        assert [b["id"] for b in result["bookings"]] == [local_id, "2"]
        assert result["bookings"][0]["status"] == "pending"
        api.get.assert_called_once_with("/bookings/customer/user_9876543210", timeout=5)
        assert len(bookings.local_bookings("user_9876543210")) == 2

    def test_falls_back_to_local(self, bookings, api):
        api.post.return_value = _offline()
        local_id = bookings.create_booking(_booking_data())["booking"]["id"]
        api.get.return_value = _offline()

        result = bookings.get_user_bookings("user_9876543210")
        assert result == {"success": True, "bookings": bookings.local_bookings("9876543210"), "source": "local"}
        assert [b["id"] for b in result["bookings"]] == [local_id]


class TestUpdateAndCancel:

    def _synced(self, bookings, api):
        api.post.return_value = _created(server_id=11)
        return bookings.create_booking(_booking_data())["booking"]

    def test_synced_booking_keeps_server_id(self, bookings, api, store):
        booking = self._synced(bookings, api)
        assert booking["serverId"] == 11
        assert store.get(booking_key(booking["id"]))["serverId"] == 11

    def test_status_update_reaches_server(self, bookings, api, store):
        booking = self._synced(bookings, api)
        api.put.return_value = ApiResponse(success=True, data={"booking": {"id": 11, "status": "confirmed"}})

        result = bookings.update_booking(booking["id"], {"status": "confirmed"})

        api.put.assert_called_once_with("/bookings/11/status", json={"status": "confirmed"}, timeout=10)
        assert result["synced"] is True
        assert result["message"] == "Booking updated successfully"
        assert store.get(booking_key(booking["id"]))["status"] == "confirmed"

    def test_update_offline_is_kept_locally(self, bookings, api, store):
        booking = self._synced(bookings, api)
        api.put.return_value = _offline()

        result = bookings.update_booking(booking["id"], {"status": "confirmed", "pickupTime": "12:00"})

        assert result["success"] is True
        assert result["synced"] is False
        assert result["message"] == "Booking updated successfully (offline mode)"
        stored = store.get(booking_key(booking["id"]))
        assert stored["pickupTime"] == "12:00"
        assert [b["pickupTime"] for b in bookings.local_bookings("9876543210")] == ["12:00"]

    def test_unsynced_edit_goes_out_with_next_send(self, bookings, api, clock):
        api.post.return_value = _offline()
        booking_id = bookings.create_booking(_booking_data())["booking"]["id"]

        result = bookings.update_booking(booking_id, {"pickupTime": "16:00"})
        assert result["synced"] is False
        api.put.assert_not_called()

        clock.now += 3
        api.post.return_value = _created()
        assert bookings.sync_pending().synced == [booking_id]
        assert api.post.call_args.kwargs["json"]["scheduled_time"] == "16:00"

    def test_update_unknown_booking(self, bookings):
        assert bookings.update_booking("nope", {"status": "confirmed"}) == {
            "success": False,
            "error": "Booking not found",
        }

    def test_cancel_calls_server(self, bookings, api, store):
        booking = self._synced(bookings, api)
        api.delete.return_value = ApiResponse(success=True, data={"booking": {"id": 11, "status": "cancelled"}})

        result = bookings.cancel_booking(booking["id"])

        api.delete.assert_called_once_with(
            "/bookings/11",
            json={"user_id": "user_9876543210", "user_type": "customer"},
            timeout=10,
        )
        assert result["synced"] is True
        assert store.get(booking_key(booking["id"]))["status"] == "cancelled"

    def test_cancel_rejected_restores_booking(self, bookings, api, store):
        booking = self._synced(bookings, api)
        api.delete.return_value = _rejected(400, "Cannot cancel completed booking")

        result = bookings.cancel_booking(booking["id"])

        assert result["success"] is False
        assert result["error"] == "Cannot cancel completed booking"
        assert store.get(booking_key(booking["id"]))["status"] == "pending"

    def test_cancel_offline(self, bookings, api, store):
        booking = self._synced(bookings, api)
        api.delete.return_value = _offline()

        result = bookings.cancel_booking(booking["id"])

        assert result["success"] is True
        assert result["synced"] is False
        assert result["message"] == "Booking cancelled successfully (offline mode)"
        assert store.get(booking_key(booking["id"]))["status"] == "cancelled"

    def test_cancel_before_sync_leaves_queue(self, bookings, api, store):
        api.post.return_value = _offline()
        booking_id = bookings.create_booking(_booking_data())["booking"]["id"]

        result = bookings.cancel_booking(booking_id)

        assert result["success"] is True
        assert bookings.pending_sync() == []
        assert booking_id not in store.get(SYNC_STATE_KEY)
        api.delete.assert_not_called()

    def test_merge_picks_up_server_id(self):
        local = [{"id": "a", "createdAt": "2026-03-01T10:00:00"}]
        remote = [{"id": "a", "serverId": 4, "createdAt": "2026-03-01T10:00:00"}]
        assert merge_bookings(local, remote)[0]["serverId"] == 4


class TestAdaptiveAuthClient:

    def _verified(self):
        return ApiResponse(success=True, data={"success": True, "data": {
            "user": {"id": 1, "phone": "9876543210", "customer_id": "CC3210000000000"},
            "token": "jwt-token",
        }})

    def test_verify_caches_user_and_token(self, store):
        api = MagicMock()
        api.token = None
        api.post.return_value = self._verified()

        auth = AdaptiveAuthClient(api, store)
        result = auth.verify_otp("9876543210", "123456", name="Asha")

        assert result["success"] is True
        assert api.token == "jwt-token"
        assert api.post.call_args.kwargs["json"] == {"phone": "9876543210", "otp": "123456", "name": "Asha"}
        assert store.get("user_9876543210")["customer_id"] == "CC3210000000000"

        restored = MagicMock()
        restored.token = None
        AdaptiveAuthClient(restored, store)
        assert restored.token == "jwt-token"

    def test_current_user_offline_uses_cache(self, store):
        api = MagicMock()
        api.token = None
        api.post.return_value = self._verified()
        auth = AdaptiveAuthClient(api, store)
        auth.verify_otp("9876543210", "123456")

        api.get.return_value = _offline()
        assert auth.current_user()["phone"] == "9876543210"

    def test_rejected_token_signs_out(self, store):
        api = MagicMock()
        api.token = None
        api.post.return_value = self._verified()
        auth = AdaptiveAuthClient(api, store)
        auth.verify_otp("9876543210", "123456")

        api.get.return_value = ApiResponse(success=False, error="Invalid or expired token", status_code=401)
        assert auth.current_user() is None
        assert store.get("auth_token") is None
        assert api.token is None

    def test_failed_verification(self, store):
        api = MagicMock()
        api.token = None
        api.post.return_value = ApiResponse(success=False, error="Invalid OTP", status_code=400)
        assert AdaptiveAuthClient(api, store).verify_otp("9876543210", "000000") == {
            "success": False,
            "error": "Invalid OTP",
        }

    def _signed_in(self, store):
        api = MagicMock()
        api.token = None
        api.post.return_value = self._verified()
        auth = AdaptiveAuthClient(api, store)
        auth.verify_otp("9876543210", "123456")
        return auth, api

    def test_update_user_saves_through_server(self, store):
        auth, api = self._signed_in(store)
        api.post.return_value = ApiResponse(success=True, data={"success": True, "user": {
            "id": 1, "phone": "9876543210", "name": "Asha Rao", "email": "asha@example.com",
        }})

        result = auth.update_user({"name": "Asha Rao", "email": "asha@example.com"})

        assert result["synced"] is True
        assert api.post.call_args.args == ("/auth/save-user",)
        body = api.post.call_args.kwargs["json"]
        assert body["phone"] == "9876543210"
        assert body["full_name"] == "Asha Rao"
        assert body["email"] == "asha@example.com"
        assert store.get("user_9876543210")["name"] == "Asha Rao"

    def test_update_user_offline_keeps_cache(self, store):
        auth, api = self._signed_in(store)
        api.post.return_value = _offline()

        result = auth.update_user({"email": "asha@example.com"})

        assert result["success"] is True
        assert result["synced"] is False
        cached = store.get("user_9876543210")
        assert cached["email"] == "asha@example.com"
        assert cached["customer_id"] == "CC3210000000000"

    def test_save_user_rejected(self, store):
        auth, api = self._signed_in(store)
        api.post.return_value = _rejected(400, "Invalid email address")

        assert auth.save_user({"phone": "9876543210", "email": "nope"}) == {
            "success": False,
            "error": "Invalid email address",
        }
        assert "email" not in store.get("user_9876543210")

    def test_save_user_needs_phone(self, store):
        auth = AdaptiveAuthClient(MagicMock(), store)
        assert auth.save_user({"name": "Asha"})["error"] == "Phone number is required"


def test_retry_delay_backs_off_to_cap():
    strategy = RetryStrategy(should_retry=True, retry_after_ms=3000, max_retries=2)
    assert [retry_delay(strategy, n) for n in (1, 2, 3, 4)] == [3, 3, 6, 12]
    assert retry_delay(strategy, 40) == MAX_SYNC_BACKOFF
