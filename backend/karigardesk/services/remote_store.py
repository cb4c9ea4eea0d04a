import logging
import time
from datetime import date
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import requests

from karigardesk import config
from karigardesk.errors import IllegalTransitionError, NotFoundError, StorageUnavailableError
from karigardesk.models.design import DesignImageBlob, DesignImageInfo, DesignMappingRead
from karigardesk.models.order import OrderBase, OrderRead, OrderStatus, OrderType
from karigardesk.services.lifecycle import Transition

logger = logging.getLogger(__name__)


class RemoteOrderStore:
    """Storage collaborator that lives on another karigardesk instance.

    Speaks the same HTTP surface this service exposes, so two desks can share
    one database. Connection failures are retried with a short backoff; HTTP
    errors map back onto the local exception types.
    """

    def __init__(self, base_url: str = None, timeout: float = None, max_retries: int = None, session=None):
        self.base_url = (base_url or config.STORAGE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.STORAGE_TIMEOUT
        self.max_retries = max(1, max_retries if max_retries is not None else config.STORAGE_MAX_RETRIES)
        self.http = session or requests.Session()
        logger.debug("RemoteOrderStore initialized with base_url=%s max_retries=%s", self.base_url, self.max_retries)

    def _request(self, method: str, path: str, raw: bool = False, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                logger.debug("%s %s attempt=%s", method, url, attempt)
                resp = self.http.request(method, url, timeout=self.timeout, **kwargs)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = e
                logger.warning("Attempt %s %s %s failed: %s", attempt, method, url, e)
                if attempt < self.max_retries:
                    time.sleep(0.5 * attempt)
                continue
            return self._decode(resp, method, url, raw=raw)
        raise StorageUnavailableError(f"Storage at {self.base_url} unreachable: {last_error}")

    def _decode(self, resp, method: str, url: str, raw: bool = False) -> Any:
        if resp.status_code == 404:
            raise NotFoundError(self._detail(resp))
        if resp.status_code == 409:
            raise IllegalTransitionError(self._detail(resp))
        if resp.status_code in (400, 422):
            raise ValueError(self._detail(resp))
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            logger.error("%s %s failed status=%s", method, url, resp.status_code)
            raise StorageUnavailableError(f"Storage error {resp.status_code}: {self._detail(resp)}") from e
        if raw:
            return resp
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise StorageUnavailableError(f"Storage returned a non-JSON body for {method} {url}") from e

    @staticmethod
    def _detail(resp) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or str(resp.status_code)
        if isinstance(body, dict) and "detail" in body:
            return str(body["detail"])
        return str(body)

    # --- orders -------------------------------------------------------------

    def create_or_update_order(self, order: OrderBase) -> str:
        payload = OrderRead.model_validate(order, from_attributes=True).model_dump(mode="json")
        body = self._request("PUT", f"/orders/{quote(order.order_id, safe='')}", json=payload)
        return (body or {}).get("order_id", order.order_id)

    def get_order(self, order_id: str) -> OrderRead:
        return OrderRead.model_validate(self._request("GET", f"/orders/{quote(order_id, safe='')}"))

    def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        order_type: Optional[OrderType] = None,
        search: Optional[str] = None,
        ready_from: Optional[date] = None,
        ready_to: Optional[date] = None,
    ) -> List[OrderRead]:
        params: Dict[str, str] = {}
        if ready_from is not None:
            params["ready_from"] = ready_from.isoformat()
        if ready_to is not None:
            params["ready_to"] = ready_to.isoformat()
        if status is not None:
            params["status"] = OrderStatus(status).value
        if order_type is not None:
            params["order_type"] = OrderType(order_type).value
        if search:
            params["search"] = search
        rows = self._request("GET", "/orders", params=params) or []
        return [OrderRead.model_validate(r) for r in rows]

    def apply_status_transition(self, order_id: str, transition: Transition, **params) -> List[OrderRead]:
        body = self._request(
            "POST",
            f"/orders/{quote(order_id, safe='')}/transitions",
            json={"transition": Transition(transition).value, "params": params},
        )
        return [OrderRead.model_validate(r) for r in (body or {}).get("orders", [])]

    def bulk_delete_by_status(self, statuses: Iterable[OrderStatus]) -> int:
        body = self._request("POST", "/orders/reset", json={"statuses": [OrderStatus(s).value for s in statuses]})
        return int((body or {}).get("deleted", 0))

    # --- design mappings ----------------------------------------------------

    def list_design_mappings(self) -> List[DesignMappingRead]:
        return [DesignMappingRead.model_validate(r) for r in (self._request("GET", "/designs") or [])]

    def upsert_design_mapping(self, design_code: str, generic_name: str, karigar_name: str) -> None:
        self._request(
            "PUT",
            f"/designs/{quote(design_code, safe='')}",
            json={"generic_name": generic_name, "karigar_name": karigar_name},
        )

    def clear_design_mappings(self) -> int:
        return int((self._request("DELETE", "/designs") or {}).get("deleted", 0))

    def reassign_design(self, design_code: str, karigar_name: str) -> int:
        body = self._request("POST", f"/designs/{quote(design_code, safe='')}/reassign", json={"karigar_name": karigar_name})
        return int((body or {}).get("updated", 0))

    # --- design images ------------------------------------------------------

    def save_design_image(self, design_code: str, content: bytes, filename: str = "") -> DesignImageInfo:
        body = self._request(
            "POST",
            f"/designs/{quote(design_code, safe='')}/image",
            files={"file": (filename or design_code, content)},
        )
        return DesignImageInfo.model_validate(body)

    def get_design_image(self, design_code: str) -> DesignImageBlob:
        resp = self._request("GET", f"/designs/{quote(design_code, safe='')}/image", raw=True)
        return DesignImageBlob(
            design_code=design_code,
            content_type=resp.headers.get("content-type", "application/octet-stream"),
            data=resp.content,
        )

    def list_design_images(self) -> List[DesignImageInfo]:
        return [DesignImageInfo.model_validate(r) for r in (self._request("GET", "/designs/images") or [])]

    # --- karigars -----------------------------------------------------------

    def add_karigar(self, name: str) -> None:
        self._request("POST", "/karigars", json={"name": name})

    def list_karigars(self) -> List[str]:
        return list(self._request("GET", "/karigars") or [])
