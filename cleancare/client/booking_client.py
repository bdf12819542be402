"""
Adaptive Booking Client
=======================

Creates and lists bookings against the CleanCare API, keeping a local copy of
everything so the app keeps working while the backend is unreachable.

Local Layout (LocalStore keys):
-------------------------------
- ``user_bookings``: list of every booking known on this device
- ``booking_<id>``: one booking
- ``pending_sync``: ids of bookings the server has not accepted yet
- ``sync_state``: per-booking retry bookkeeping for ``pending_sync``

Write Path:
-----------
1. Refuse a second submission of the same booking while the first is running
2. Save the booking locally
3. POST it to ``/bookings`` (10 s timeout) with the local id as
   ``client_reference``, so re-sending it never creates a duplicate
4. On success store the server's ``custom_order_id`` and ``serverId``; on
   failure queue it

``sync_pending()`` re-sends queued bookings using the retry policy
from ``cleancare.errors.get_retry_strategy``, backing off up to five minutes
once that policy is spent. Only rejected bookings leave the queue unsent.

Changes:
--------
``update_booking`` and ``cancel_booking`` change the local copy first, then
reach the server through the status and cancel endpoints when the booking
has a ``serverId``.

Read Path:
----------
``get_user_bookings`` fetches ``/bookings/customer/<id>`` (5 s timeout),
converts server records to the local shape, merges them with local bookings
(local wins on the same id) newest first, and falls back to the local copy
when the server is unavailable.
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from ..errors import RetryStrategy, classify_error, get_retry_strategy
from .api_client import ApiClient, ApiResponse
from .local_store import LocalStore

logger = logging.getLogger(__name__)

SYNC_TIMEOUT = 10
FETCH_TIMEOUT = 5

BOOKINGS_KEY = "user_bookings"
PENDING_KEY = "pending_sync"
SYNC_STATE_KEY = "sync_state"

MAX_SYNC_BACKOFF = 300

PROVIDER_NAME = "CleanCare Pro"
DEFAULT_SERVICE = "Home Service"
DEFAULT_PICKUP_TIME = "10:00"
DEFAULT_DELIVERY_TIME = "18:00"


def customer_reference(phone_or_id: str) -> str:
    """Bookings are filed under ``user_<phone>``."""
    value = str(phone_or_id)
    return value if value.startswith("user_") else f"user_{value}"


def _bare(user_id: Optional[str]) -> str:
    value = str(user_id or "")
    return value[len("user_"):] if value.startswith("user_") else value


def booking_key(booking_id: str) -> str:
    return f"booking_{booking_id}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.min.replace(tzinfo=timezone.utc)


def delivery_date_for(pickup_date: Optional[str], today: Optional[date] = None) -> str:
    """Delivery is the day after pickup."""
    today = today or date.today()
    if not pickup_date:
        return today.isoformat()
    try:
        pickup = date.fromisoformat(pickup_date[:10])
    except ValueError:
        logger.debug("Unparseable pickup date %r", pickup_date)
        return today.isoformat()
    return (pickup + timedelta(days=1)).isoformat()


def transform_backend_booking(record: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """Convert a ``/bookings`` record to the shape stored on the device."""
    customer = record.get("customer") or {}
    services = record.get("services") or [record.get("service") or DEFAULT_SERVICE]
    return {
        "id": record.get("client_reference") or str(record.get("id")),
        "serverId": record.get("id"),
        "custom_order_id": record.get("custom_order_id"),
        "userId": user_id,
        "services": list(services),
        "totalAmount": record.get("total_price") or record.get("final_amount") or 0,
        "status": record.get("status") or "pending",
        "pickupDate": record.get("scheduled_date"),
        "deliveryDate": delivery_date_for(record.get("scheduled_date")),
        "pickupTime": record.get("scheduled_time") or DEFAULT_PICKUP_TIME,
        "deliveryTime": DEFAULT_DELIVERY_TIME,
        "address": record.get("address") or "Address not provided",
        "contactDetails": {
            "phone": customer.get("phone") or "",
            "name": customer.get("full_name") or "Customer",
            "instructions": record.get("additional_details") or record.get("special_instructions") or "",
        },
        "paymentStatus": record.get("payment_status") or "pending",
        "paymentMethod": "cash",
        "createdAt": record.get("created_at") or _now_iso(),
        "updatedAt": record.get("updated_at") or _now_iso(),
    }


def merge_bookings(local: List[Dict[str, Any]], remote: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Local bookings win on the same id but pick up the server id; result is
    newest first.
    """
    server_ids = {b.get("id"): b.get("serverId") for b in remote if b.get("serverId") is not None}
    local = [
        {**b, "serverId": server_ids[b["id"]]} if b.get("serverId") is None and b.get("id") in server_ids else b
        for b in local
    ]
    local_ids = {b.get("id") for b in local}
    merged = local + [b for b in remote if b.get("id") not in local_ids]
    return sorted(merged, key=lambda b: _parse_timestamp(b.get("createdAt")), reverse=True)


def _address_text(address: Any) -> str:
    if isinstance(address, dict):
        if address.get("fullAddress"):
            return address["fullAddress"]
        parts = [address.get(k) for k in ("flatNo", "street", "landmark", "village", "city", "pincode")]
        return ", ".join(p for p in parts if p)
    return address or ""


def backend_payload(booking: Dict[str, Any]) -> Dict[str, Any]:
    """Build the ``POST /bookings`` body for a locally stored booking."""
    services = [s for s in booking.get("services") or [] if s and str(s).strip()] or [DEFAULT_SERVICE]
    total = float(booking.get("totalAmount") or 0)
    discount = float(booking.get("discount_amount") or 0)
    address = booking.get("address")
    coordinates = address.get("coordinates") if isinstance(address, dict) else None
    instructions = (booking.get("contactDetails") or {}).get("instructions") or ""

    payload = {
        "customer_id": customer_reference(booking["userId"]),
        "service": ", ".join(services),
        "service_type": "home-service",
        "services": services,
        "scheduled_date": booking.get("pickupDate") or date.today().isoformat(),
        "scheduled_time": booking.get("pickupTime") or DEFAULT_PICKUP_TIME,
        "provider_name": PROVIDER_NAME,
        "address": _address_text(address).strip() or "Address not provided",
        "additional_details": instructions,
        "special_instructions": instructions,
        "total_price": total,
        "discount_amount": discount,
        "final_amount": max(total - discount, 0.0),
        "client_reference": booking["id"],
    }
    if coordinates:
        payload["coordinates"] = coordinates
    if booking.get("item_prices"):
        payload["item_prices"] = booking["item_prices"]
    return payload


def retry_delay(strategy: RetryStrategy, attempts: int) -> float:
    """
    Seconds to wait before the next send.

    Within the strategy's budget the delay is fixed; past it the delay doubles
    per attempt up to MAX_SYNC_BACKOFF, so an offline device keeps its queue.
    """
    base = strategy.retry_after_seconds
    if attempts <= strategy.max_retries:
        return base
    return min(base * 2 ** (attempts - strategy.max_retries), MAX_SYNC_BACKOFF)


@dataclass
class SyncReport:
    synced: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    deferred: List[str] = field(default_factory=list)


class AdaptiveBookingClient:
    def __init__(
        self,
        api: ApiClient,
        store: LocalStore,
        clock: Callable[[], float] = time.time,
    ):
        self.api = api
        self.store = store
        self._clock = clock
        self._in_flight: set = set()
        self._in_flight_lock = threading.Lock()
        self._sync_lock = threading.Lock()

    # =========================================================================
    # Local storage
    # =========================================================================

    def _save_local(self, booking: Dict[str, Any]) -> None:
        bookings = self.store.get(BOOKINGS_KEY, [])
        for index, existing in enumerate(bookings):
            if existing.get("id") == booking["id"]:
                bookings[index] = booking
                break
        else:
            bookings.append(booking)
        self.store.set(BOOKINGS_KEY, bookings)
        self.store.set(booking_key(booking["id"]), booking)

    def local_bookings(self, user_id: str) -> List[Dict[str, Any]]:
        """Bookings stored for ``user_id``, with or without the ``user_`` prefix."""
        wanted = _bare(user_id)
        return [b for b in self.store.get(BOOKINGS_KEY, []) if _bare(b.get("userId")) == wanted]

    def _replace_user_bookings(self, user_id: str, bookings: List[Dict[str, Any]]) -> None:
        wanted = _bare(user_id)
        others = [b for b in self.store.get(BOOKINGS_KEY, []) if _bare(b.get("userId")) != wanted]
        self.store.set(BOOKINGS_KEY, others + bookings)

    def pending_sync(self) -> List[str]:
        return list(self.store.get(PENDING_KEY, []))

    # =========================================================================
    # Create
    # =========================================================================

    def _new_id(self) -> str:
        return f"{int(self._clock() * 1000)}_{secrets.token_hex(4)}"

    def create_booking(
        self,
        booking_data: Dict[str, Any],
        item_prices: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Save a booking locally, then try to send it to the server.

        Returns:
            {"success": True, "message": ..., "booking": {...}, "synced": bool}
            or {"success": False, "error": ...} for a duplicate submission
        """
        user_id = customer_reference(booking_data["userId"])
        signature = "_".join(str(part) for part in (
            user_id,
            booking_data.get("pickupDate"),
            booking_data.get("pickupTime"),
            booking_data.get("totalAmount"),
        ))

        with self._in_flight_lock:
            if signature in self._in_flight:
                logger.warning("Duplicate booking submission ignored: %s", signature)
                return {"success": False, "error": "Booking is already being processed. Please wait."}
            self._in_flight.add(signature)

        try:
            now = _now_iso()
            booking = {
                **booking_data,
                "userId": user_id,
                "id": self._new_id(),
                "status": booking_data.get("status") or "pending",
                "paymentStatus": booking_data.get("paymentStatus") or "pending",
                "createdAt": now,
                "updatedAt": now,
            }
            if "deliveryDate" not in booking_data:
                booking["deliveryDate"] = delivery_date_for(booking.get("pickupDate"))
            if item_prices:
                booking["item_prices"] = item_prices

            self._save_local(booking)
            logger.info("Booking %s saved locally", booking["id"])

            result = self._send(booking)
            if result.success:
                booking = self._mark_synced(booking, result)
                return {
                    "success": True,
                    "message": "Booking created and saved to server successfully",
                    "booking": booking,
                    "synced": True,
                }

            self._queue(booking, result)
            return {
                "success": True,
                "message": "Booking created (saved locally, will sync when online)",
                "booking": self.store.get(booking_key(booking["id"]), booking),
                "synced": False,
            }
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(signature)

    # =========================================================================
    # Sync
    # =========================================================================

    def _send(self, booking: Dict[str, Any]) -> ApiResponse:
        return self.api.post("/bookings", json=backend_payload(booking), timeout=SYNC_TIMEOUT)

    def _mark_synced(self, booking: Dict[str, Any], result: ApiResponse) -> Dict[str, Any]:
        server = (result.data or {}).get("booking") or {}
        updated = {**booking, "updatedAt": _now_iso()}
        updated.pop("syncError", None)
        if server.get("custom_order_id"):
            updated["custom_order_id"] = server["custom_order_id"]
        if server.get("id") is not None:
            updated["serverId"] = server["id"]
        self._save_local(updated)
        logger.info("Booking %s synced as %s", booking["id"], updated.get("custom_order_id"))
        return updated

    def _handle_failure(
        self,
        booking: Dict[str, Any],
        result: ApiResponse,
        state: Dict[str, Any],
    ) -> bool:
        """Record a failed send. Returns True if the booking should stay queued."""
        booking_id = booking["id"]
        details = classify_error(result.exception or Exception(result.error or "Network error"), "sync booking")
        strategy = get_retry_strategy(details)
        attempts = state.get(booking_id, {}).get("attempts", 0) + 1

        if strategy.should_retry:
            state[booking_id] = {
                "attempts": attempts,
                "next_attempt_at": self._clock() + retry_delay(strategy, attempts),
                "last_error": details.code,
            }
            return True

        logger.warning("Dropping booking %s from sync after %d attempts: %s", booking_id, attempts, details.code)
        state.pop(booking_id, None)
        self._save_local({**booking, "syncError": details.code})
        return False

    def _queue(self, booking: Dict[str, Any], result: ApiResponse) -> None:
        with self._sync_lock:
            state = self.store.get(SYNC_STATE_KEY, {})
            if self._handle_failure(booking, result, state):
                queue = self.store.get(PENDING_KEY, [])
                if booking["id"] not in queue:
                    queue.append(booking["id"])
                self.store.set(PENDING_KEY, queue)
            self.store.set(SYNC_STATE_KEY, state)

    def sync_pending(self) -> SyncReport:
        """
        Re-send queued bookings whose retry delay has passed.

        A booking stays queued while its failures are retryable, waiting
        longer once its category's retry budget is spent. A rejected booking
        leaves the queue and keeps a ``syncError`` code locally.
        """
        report = SyncReport()
        with self._sync_lock:
            queue = self.store.get(PENDING_KEY, [])
            state = self.store.get(SYNC_STATE_KEY, {})
            remaining = []
            now = self._clock()

            for booking_id in queue:
                booking = self.store.get(booking_key(booking_id))
                if booking is None:
                    state.pop(booking_id, None)
                    continue

                if state.get(booking_id, {}).get("next_attempt_at", 0) > now:
                    report.deferred.append(booking_id)
                    remaining.append(booking_id)
                    continue

                result = self._send(booking)
                if result.success:
                    self._mark_synced(booking, result)
                    state.pop(booking_id, None)
                    report.synced.append(booking_id)
                elif self._handle_failure(booking, result, state):
                    report.deferred.append(booking_id)
                    remaining.append(booking_id)
                else:
                    report.failed.append(booking_id)

            self.store.set(PENDING_KEY, remaining)
            self.store.set(SYNC_STATE_KEY, state)

        if report.synced or report.failed:
            logger.info("Sync finished: %d synced, %d failed, %d waiting",
                        len(report.synced), len(report.failed), len(report.deferred))
        return report

    # =========================================================================
    # Update / cancel
    # =========================================================================

    def _drop_from_queue(self, booking_id: str) -> bool:
        with self._sync_lock:
            queue = self.store.get(PENDING_KEY, [])
            if booking_id not in queue:
                return False
            self.store.set(PENDING_KEY, [i for i in queue if i != booking_id])
            state = self.store.get(SYNC_STATE_KEY, {})
            state.pop(booking_id, None)
            self.store.set(SYNC_STATE_KEY, state)
            return True

    def _apply_remote(
        self,
        previous: Dict[str, Any],
        updated: Dict[str, Any],
        result: ApiResponse,
        message: str,
    ) -> Dict[str, Any]:
        if result.success:
            server = (result.data or {}).get("booking") or {}
            if server.get("status"):
                updated = {**updated, "status": server["status"]}
                self._save_local(updated)
            return {"success": True, "message": message, "booking": updated, "synced": True}

        if result.rejected:
            # The server's copy wins, e.g. a completed booking stays completed
            self._save_local(previous)
            return {"success": False, "error": result.error, "booking": previous}

        logger.info("Booking %s changed locally only: %s", updated["id"], result.error)
        return {
            "success": True,
            "message": f"{message} (offline mode)",
            "booking": updated,
            "synced": False,
        }

    def update_booking(self, booking_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply ``updates`` to the local booking.

        A status change on a booking the server knows is sent to
        ``PUT /bookings/<serverId>/status``. Any other change to a booking still
        in ``pending_sync`` goes out with its next send.
        """
        previous = self.store.get(booking_key(booking_id))
        if previous is None:
            return {"success": False, "error": "Booking not found"}

        updated = {**previous, **updates, "updatedAt": _now_iso()}
        self._save_local(updated)

        server_id = previous.get("serverId")
        if "status" not in updates or server_id is None:
            return {
                "success": True,
                "message": "Booking updated successfully (offline mode)",
                "booking": updated,
                "synced": False,
            }

        result = self.api.put(
            f"/bookings/{server_id}/status",
            json={"status": updates["status"]},
            timeout=SYNC_TIMEOUT,
        )
        return self._apply_remote(previous, updated, result, "Booking updated successfully")

    def cancel_booking(self, booking_id: str) -> Dict[str, Any]:
        """
        Cancel a booking as its customer.

        A booking the server has not accepted yet simply leaves the sync
        queue; otherwise ``DELETE /bookings/<serverId>`` cancels it remotely.
        """
        previous = self.store.get(booking_key(booking_id))
        if previous is None:
            return {"success": False, "error": "Booking not found"}

        updated = {**previous, "status": "cancelled", "updatedAt": _now_iso()}
        self._save_local(updated)

        if self._drop_from_queue(booking_id):
            logger.info("Booking %s cancelled before it was synced", booking_id)
            return {"success": True, "message": "Booking cancelled successfully", "booking": updated, "synced": True}

        server_id = previous.get("serverId")
        if server_id is None:
            return {
                "success": True,
                "message": "Booking cancelled successfully (offline mode)",
                "booking": updated,
                "synced": False,
            }

        result = self.api.delete(
            f"/bookings/{server_id}",
            json={"user_id": customer_reference(previous["userId"]), "user_type": "customer"},
            timeout=SYNC_TIMEOUT,
        )
        return self._apply_remote(previous, updated, result, "Booking cancelled successfully")

    # =========================================================================
    # Read
    # =========================================================================

    def get_user_bookings(self, user_id: str) -> Dict[str, Any]:
        user_id = customer_reference(user_id)
        local = self.local_bookings(user_id)

        result = self.api.get(f"/bookings/customer/{user_id}", timeout=FETCH_TIMEOUT)
        records = (result.data or {}).get("bookings") if result.success else None
        if records:
            remote = [transform_backend_booking(r, user_id) for r in records]
            merged = merge_bookings(local, remote)
            self._replace_user_bookings(user_id, merged)
            return {"success": True, "bookings": merged, "source": "server"}

        if not result.success:
            logger.info("Backend unavailable (%s), using local bookings", result.error)
        return {"success": True, "bookings": merge_bookings(local, []), "source": "local"}
