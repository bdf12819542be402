"""
Adaptive Address Client
=======================

Saved addresses of the signed-in user through ``/api/addresses`` (Bearer
token on the ApiClient), mirrored in the LocalStore.

Local Layout (LocalStore keys):
-------------------------------
- ``addresses_<userId>``: the user's addresses in the shape the booking
  screens show (``fullAddress``, ``label``, ``type``...)
- ``address_deletions_<userId>``: server ids deleted while offline

Addresses known to the server carry ``serverId``; ones saved offline get an
``addr_<ms>_<hex>`` id. A change the server has not seen yet is flagged
``pendingSync`` and sent by ``sync_pending()``. A request the server rejects
(4xx) is reported as a failure and never retried.
"""

import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .api_client import ApiClient, ApiResponse
from .booking_client import SyncReport, customer_reference
from .local_store import LocalStore

logger = logging.getLogger(__name__)

DEFAULT_STATE = "India"


def addresses_key(user_id: str) -> str:
    return f"addresses_{user_id}"


def deletions_key(user_id: str) -> str:
    return f"address_deletions_{user_id}"


def transform_backend_address(record: Dict[str, Any]) -> Dict[str, Any]:
    """Convert an ``/addresses`` record to the local shape."""
    full_address = record.get("full_address") or ""
    return {
        "id": str(record.get("id")),
        "serverId": record.get("id"),
        "flatNo": full_address.split(",")[0].strip(),
        "street": record.get("area") or "",
        "landmark": record.get("landmark") or "",
        "village": record.get("city") or "",
        "city": record.get("city") or "",
        "state": record.get("state") or DEFAULT_STATE,
        "pincode": record.get("pincode") or "",
        "fullAddress": full_address,
        "coordinates": record.get("coordinates"),
        "label": record.get("title") or record.get("address_type") or "",
        "type": record.get("address_type") or "other",
        "phone": record.get("contact_phone") or "",
        "isDefault": bool(record.get("is_default")),
        "createdAt": record.get("created_at"),
        "status": record.get("status") or "active",
    }


def backend_address(address: Dict[str, Any]) -> Dict[str, Any]:
    """Build the ``/addresses`` body for a local address."""
    body = {
        "title": address.get("label") or address.get("type"),
        "full_address": address.get("fullAddress"),
        "area": address.get("street") or address.get("village"),
        "city": address.get("city") or address.get("village"),
        "state": address.get("state") or DEFAULT_STATE,
        "pincode": address.get("pincode"),
        "landmark": address.get("landmark"),
        "address_type": address.get("type"),
        "contact_phone": address.get("phone"),
    }
    if address.get("coordinates"):
        body["coordinates"] = address["coordinates"]
    return {k: v for k, v in body.items() if v is not None}


class AdaptiveAddressClient:
    def __init__(
        self,
        api: ApiClient,
        store: LocalStore,
        user_id: str,
        clock: Callable[[], float] = time.time,
    ):
        self.api = api
        self.store = store
        self.user_id = customer_reference(user_id)
        self._clock = clock

    # =========================================================================
    # Local storage
    # =========================================================================

    def local_addresses(self) -> List[Dict[str, Any]]:
        return list(self.store.get(addresses_key(self.user_id), []))

    def pending_deletions(self) -> List[int]:
        return list(self.store.get(deletions_key(self.user_id), []))

    def _set_local(self, addresses: List[Dict[str, Any]]) -> None:
        self.store.set(addresses_key(self.user_id), addresses)

    def _save_local(self, address: Dict[str, Any], replaces: Optional[str] = None) -> Dict[str, Any]:
        addresses = [a for a in self.local_addresses() if replaces is None or a.get("id") != replaces]
        for index, existing in enumerate(addresses):
            if existing.get("id") == address["id"]:
                addresses[index] = address = {**existing, **address}
                break
        else:
            addresses.append(address)
        self._set_local(addresses)
        return address

    def _remove_local(self, address_id: str) -> bool:
        addresses = self.local_addresses()
        kept = [a for a in addresses if a.get("id") != address_id]
        self._set_local(kept)
        return len(kept) != len(addresses)

    def _new_id(self) -> str:
        return f"addr_{int(self._clock() * 1000)}_{secrets.token_hex(4)}"

    # =========================================================================
    # Read
    # =========================================================================

    def get_user_addresses(self) -> Dict[str, Any]:
        """Server addresses with unsent local changes applied; the local copy offline."""
        result = self.api.get("/addresses")
        if not result.success:
            logger.info("Addresses unavailable from server (%s), using local copy", result.error)
            return {"success": True, "data": self.local_addresses(), "source": "local"}

        deleted = set(self.pending_deletions())
        unsent = {a["id"]: a for a in self.local_addresses() if a.get("pendingSync")}
        addresses = []
        for record in (result.data or {}).get("data") or []:
            if record.get("id") in deleted:
                continue
            address = transform_backend_address(record)
            addresses.append(unsent.pop(address["id"], address))
        addresses.extend(unsent.values())

        self._set_local(addresses)
        return {"success": True, "data": addresses, "source": "server"}

    # =========================================================================
    # Write
    # =========================================================================

    def _push(self, address: Dict[str, Any]) -> ApiResponse:
        body = backend_address(address)
        server_id = address.get("serverId")
        if server_id is not None:
            return self.api.put(f"/addresses/{server_id}", json=body)
        return self.api.post("/addresses", json=body)

    def _store_saved(self, address: Dict[str, Any], result: ApiResponse) -> Dict[str, Any]:
        saved = transform_backend_address((result.data or {}).get("data") or {})
        return self._save_local(saved, replaces=address.get("id"))

    def save_address(self, address: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create or update an address.

        Returns:
            {"success": True, "message": ..., "data": address, "synced": bool}
            or {"success": False, "error": ...} when the server rejects it
        """
        result = self._push(address)
        if result.success:
            saved = self._store_saved(address, result)
            return {"success": True, "message": "Address saved successfully", "data": saved, "synced": True}

        if result.rejected:
            return {"success": False, "error": result.error}

        local = self._save_local({
            **address,
            "id": address.get("id") or self._new_id(),
            "createdAt": address.get("createdAt") or datetime.now(timezone.utc).isoformat(),
            "status": address.get("status") or "active",
            "pendingSync": True,
        })
        logger.info("Address %s saved locally", local["id"])
        return {
            "success": True,
            "message": "Address saved locally (will sync when online)",
            "data": local,
            "synced": False,
        }

    def delete_address(self, address_id: str) -> Dict[str, Any]:
        address = next((a for a in self.local_addresses() if a.get("id") == address_id), None)
        if address is not None:
            server_id = address.get("serverId")
        else:
            server_id = int(address_id) if address_id.isdigit() else None

        if server_id is None:
            if self._remove_local(address_id):
                return {"success": True, "message": "Address deleted successfully"}
            return {"success": False, "error": "No addresses found"}

        result = self.api.delete(f"/addresses/{server_id}")
        if result.success or result.status_code == 404:
            self._remove_local(address_id)
            return {"success": True, "message": "Address deleted successfully"}
        if result.rejected:
            return {"success": False, "error": result.error}

        self._remove_local(address_id)
        deletions = self.pending_deletions()
        if server_id not in deletions:
            deletions.append(server_id)
        self.store.set(deletions_key(self.user_id), deletions)
        return {"success": True, "message": "Address deleted locally (will sync when online)"}

    # =========================================================================
    # Sync
    # =========================================================================

    def sync_pending(self) -> SyncReport:
        """Send offline deletions and saves. Rejected changes are dropped."""
        report = SyncReport()

        remaining = []
        for server_id in self.pending_deletions():
            result = self.api.delete(f"/addresses/{server_id}")
            if result.success or result.status_code == 404:
                report.synced.append(str(server_id))
            elif result.rejected:
                report.failed.append(str(server_id))
            else:
                report.deferred.append(str(server_id))
                remaining.append(server_id)
        self.store.set(deletions_key(self.user_id), remaining)

        for address in self.local_addresses():
            if not address.get("pendingSync"):
                continue
            result = self._push(address)
            if result.success:
                saved = self._store_saved(address, result)
                report.synced.append(saved["id"])
            elif result.rejected:
                logger.warning("Address %s rejected by server: %s", address["id"], result.error)
                self._save_local({**address, "pendingSync": False, "syncError": "REQUEST_REJECTED"})
                report.failed.append(address["id"])
            else:
                report.deferred.append(address["id"])

        return report
