"""Stores em Firestore (produção alternativa).

Schema:
    /carts/{tenant_id}__{checkout_id}        → Cart (mode="json")
    /cases/{case_id}                         → AbandonedCartCase (datetimes nativos)
    /cases_by_cart/{tenant_id}__{checkout_id} → {"case_id": ...}
    /calls/{call_id}                         → Call
    /do_not_contact/{tenant_id}__{phone}      → {"tenant_id", "phone_number"}

Compare-and-set usa precondição `last_update_time` do snapshot lido;
FailedPrecondition significa que outro escritor venceu.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime
from typing import Any

from google.api_core.exceptions import AlreadyExists, FailedPrecondition, GoogleAPICallError
from google.cloud.firestore_v1.base_query import FieldFilter

from skiddly.domain.cart import Cart
from skiddly.domain.case import AbandonedCartCase, Call
from skiddly.domain.enums import CartStatus
from skiddly.domain.errors import StoreError
from skiddly.domain.protocols.call_store import CallStoreProtocol
from skiddly.domain.protocols.cart_store import CartStoreProtocol
from skiddly.domain.protocols.case_store import CaseStoreProtocol
from skiddly.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


def _pair_id(first: str, second: str) -> str:
    return f"{first}__{second}"


class FirestoreCartStore(CartStoreProtocol):
    """Carrinhos em Firestore."""

    def __init__(self, firestore_client: Any, collection: str = "carts") -> None:
        self._client = firestore_client
        self._collection = collection

    def _doc(self, tenant_id: str, checkout_id: str) -> Any:
        return self._client.collection(self._collection).document(
            _pair_id(tenant_id, checkout_id)
        )

    def get(self, tenant_id: str, checkout_id: str) -> Cart | None:
        try:
            snapshot = self._doc(tenant_id, checkout_id).get()
        except GoogleAPICallError as e:
            logger.error("Failed to load cart from Firestore", extra={"error": type(e).__name__})
            raise StoreError(f"Firestore cart load failed: {e}") from e
        if not snapshot.exists:
            return None
        return Cart.model_validate(snapshot.to_dict())

    def save(self, cart: Cart) -> None:
        try:
            self._doc(cart.tenant_id, cart.checkout_id).set(cart.model_dump(mode="json"))
        except GoogleAPICallError as e:
            logger.error(
                "Failed to save cart to Firestore",
                extra={"checkout_id": cart.checkout_id, "error": type(e).__name__},
            )
            raise StoreError(f"Firestore cart save failed: {e}") from e

    def list_open(self) -> Iterator[Cart]:
        query = self._client.collection(self._collection).where(
            filter=FieldFilter("status", "in", [CartStatus.IN_CHECKOUT.value, CartStatus.ABANDONED.value])
        )
        try:
            snapshots = list(query.stream())
        except GoogleAPICallError as e:
            raise StoreError(f"Firestore open carts query failed: {e}") from e
        for snapshot in snapshots:
            yield Cart.model_validate(snapshot.to_dict())


class FirestoreCaseStore(CaseStoreProtocol):
    """Casos em Firestore com precondição de update_time."""

    def __init__(
        self,
        firestore_client: Any,
        collection: str = "cases",
        do_not_contact_collection: str = "do_not_contact",
    ) -> None:
        self._client = firestore_client
        self._collection = collection
        self._index_collection = f"{collection}_by_cart"
        self._dnc_collection = do_not_contact_collection

    def _doc(self, case_id: str) -> Any:
        return self._client.collection(self._collection).document(case_id)

    def get(self, case_id: str) -> AbandonedCartCase | None:
        try:
            snapshot = self._doc(case_id).get()
        except GoogleAPICallError as e:
            logger.error("Failed to load case from Firestore", extra={"error": type(e).__name__})
            raise StoreError(f"Firestore case load failed: {e}") from e
        if not snapshot.exists:
            return None
        return AbandonedCartCase.model_validate(snapshot.to_dict())

    def get_by_cart(self, tenant_id: str, checkout_id: str) -> AbandonedCartCase | None:
        try:
            snapshot = (
                self._client.collection(self._index_collection)
                .document(_pair_id(tenant_id, checkout_id))
                .get()
            )
        except GoogleAPICallError as e:
            raise StoreError(f"Firestore case index lookup failed: {e}") from e
        if not snapshot.exists:
            return None
        return self.get(snapshot.to_dict()["case_id"])

    def create(self, case: AbandonedCartCase) -> bool:
        index_ref = self._client.collection(self._index_collection).document(
            _pair_id(case.tenant_id, case.checkout_id)
        )
        try:
            index_ref.create({"case_id": case.case_id})
        except AlreadyExists:
            return False
        except GoogleAPICallError as e:
            raise StoreError(f"Firestore case index create failed: {e}") from e

        try:
            self._doc(case.case_id).create(case.model_dump())
        except GoogleAPICallError as e:
            logger.error(
                "Failed to create case in Firestore",
                extra={"case_id": case.case_id, "error": type(e).__name__},
            )
            raise StoreError(f"Firestore case create failed: {e}") from e
        return True

    def compare_and_set(self, case: AbandonedCartCase, expected_version: int) -> bool:
        doc_ref = self._doc(case.case_id)
        try:
            snapshot = doc_ref.get()
            if not snapshot.exists:
                return False
            if snapshot.to_dict().get("version") != expected_version:
                return False
            doc_ref.update(
                case.model_dump(),
                option=self._client.write_option(last_update_time=snapshot.update_time),
            )
        except FailedPrecondition:
            logger.info("case_cas_precondition_failed", extra={"case_id": case.case_id})
            return False
        except GoogleAPICallError as e:
            logger.error(
                "Failed to update case in Firestore",
                extra={"case_id": case.case_id, "error": type(e).__name__},
            )
            raise StoreError(f"Firestore case update failed: {e}") from e
        return True

    def list_due(self, now: datetime) -> Iterator[AbandonedCartCase]:
        query = (
            self._client.collection(self._collection)
            .where(filter=FieldFilter("next_call_time", "<=", now))
            .order_by("next_call_time")
        )
        try:
            snapshots = list(query.stream())
        except GoogleAPICallError as e:
            raise StoreError(f"Firestore due query failed: {e}") from e
        for snapshot in snapshots:
            case = AbandonedCartCase.model_validate(snapshot.to_dict())
            if not case.do_not_contact:
                yield case

    def mark_phone_do_not_contact(self, tenant_id: str, phone_number: str) -> None:
        try:
            self._client.collection(self._dnc_collection).document(
                _pair_id(tenant_id, phone_number)
            ).set({"tenant_id": tenant_id, "phone_number": phone_number})
        except GoogleAPICallError as e:
            raise StoreError(f"Firestore do-not-contact write failed: {e}") from e

    def is_phone_do_not_contact(self, tenant_id: str, phone_number: str) -> bool:
        try:
            snapshot = (
                self._client.collection(self._dnc_collection)
                .document(_pair_id(tenant_id, phone_number))
                .get()
            )
        except GoogleAPICallError as e:
            raise StoreError(f"Firestore do-not-contact lookup failed: {e}") from e
        return bool(snapshot.exists)


class FirestoreCallStore(CallStoreProtocol):
    """Ligações em Firestore; outcome gravado uma vez via precondição."""

    def __init__(self, firestore_client: Any, collection: str = "calls") -> None:
        self._client = firestore_client
        self._collection = collection

    def _doc(self, call_id: str) -> Any:
        return self._client.collection(self._collection).document(call_id)

    def create(self, call: Call) -> None:
        try:
            self._doc(call.call_id).set(call.model_dump())
        except GoogleAPICallError as e:
            logger.error(
                "Failed to create call in Firestore",
                extra={"call_id": call.call_id, "error": type(e).__name__},
            )
            raise StoreError(f"Firestore call create failed: {e}") from e

    def get(self, call_id: str) -> Call | None:
        try:
            snapshot = self._doc(call_id).get()
        except GoogleAPICallError as e:
            raise StoreError(f"Firestore call load failed: {e}") from e
        if not snapshot.exists:
            return None
        return Call.model_validate(snapshot.to_dict())

    def get_by_provider_id(self, provider_call_id: str) -> Call | None:
        query = (
            self._client.collection(self._collection)
            .where(filter=FieldFilter("provider_call_id", "==", provider_call_id))
            .limit(1)
        )
        try:
            snapshots = list(query.stream())
        except GoogleAPICallError as e:
            raise StoreError(f"Firestore call lookup failed: {e}") from e
        return Call.model_validate(snapshots[0].to_dict()) if snapshots else None

    def attach_provider_id(self, call_id: str, provider_call_id: str) -> None:
        try:
            self._doc(call_id).update({"provider_call_id": provider_call_id})
        except GoogleAPICallError as e:
            raise StoreError(f"Firestore call update failed: {e}") from e

    def record_outcome(self, call: Call) -> bool:
        doc_ref = self._doc(call.call_id)
        try:
            snapshot = doc_ref.get()
            if not snapshot.exists:
                doc_ref.create(call.model_dump())
                return True
            current = Call.model_validate(snapshot.to_dict())
            if current.has_outcome:
                return False
            if current.provider_call_id and not call.provider_call_id:
                call = call.model_copy(update={"provider_call_id": current.provider_call_id})
            doc_ref.update(
                call.model_dump(),
                option=self._client.write_option(last_update_time=snapshot.update_time),
            )
        except (FailedPrecondition, AlreadyExists):
            logger.info("call_outcome_write_conflict", extra={"call_id": call.call_id})
            return False
        except GoogleAPICallError as e:
            logger.error(
                "Failed to record call outcome in Firestore",
                extra={"call_id": call.call_id, "error": type(e).__name__},
            )
            raise StoreError(f"Firestore call outcome failed: {e}") from e
        return True

    def list_for_case(self, case_id: str) -> list[Call]:
        query = self._client.collection(self._collection).where(
            filter=FieldFilter("case_id", "==", case_id)
        )
        try:
            snapshots = list(query.stream())
        except GoogleAPICallError as e:
            raise StoreError(f"Firestore call listing failed: {e}") from e
        calls = [Call.model_validate(s.to_dict()) for s in snapshots]
        return sorted(calls, key=lambda c: c.attempt_number)
