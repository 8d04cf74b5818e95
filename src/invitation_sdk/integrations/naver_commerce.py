"""Naver Commerce API client used to verify paid orders."""

import base64
import logging
import os
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import requests

logger = logging.getLogger("StoryInvitation.integrations.naver_commerce")

DEFAULT_BASE_URL = "https://api.commerce.naver.com/external/v1"
DEFAULT_TARGET_PRODUCT_ID = "12894854339"
PAID_STATUSES = {"PAYED", "PAYMENT_DONE", "DELIVER_READY", "DELIVERING", "DELIVERED"}
KST = timezone(timedelta(hours=9))


class NaverCommerceError(RuntimeError):
    """Raised when the commerce API cannot be used (credentials, token)."""


@dataclass
class OrderInfo:
    """A paid order for the target product."""
    product_order_id: str
    product_id: str
    status: str
    product_name: str = ""
    orderer_name: str = ""
    order_date: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_api(cls, item: dict) -> "OrderInfo":
        return cls(
            product_order_id=str(item.get("productOrderId", "")),
            product_id=str(item.get("productId", "")),
            status=item.get("productOrderStatus", ""),
            product_name=item.get("productName") or "",
            orderer_name=item.get("ordererName") or "",
            order_date=item.get("orderDate") or "",
        )


@dataclass
class CommerceCredentials:
    """API credentials plus the cached access token."""
    client_id: str = ""
    client_secret: str = ""
    type: str = "SELF"
    account_id: str = ""
    access_token: str = ""
    token_expires_at: float = 0.0

    def is_token_valid(self) -> bool:
        """Check if the access token is still valid (with 5-minute buffer)."""
        if not self.access_token:
            return False
        return time.time() < (self.token_expires_at - 300)

    @classmethod
    def from_env(cls) -> "CommerceCredentials":
        return cls(
            client_id=os.getenv("NAVER_COMMERCE_CLIENT_ID", ""),
            client_secret=os.getenv("NAVER_COMMERCE_CLIENT_SECRET", ""),
            type=os.getenv("NAVER_COMMERCE_TYPE", "SELF"),
            account_id=os.getenv("NAVER_COMMERCE_ACCOUNT_ID", ""),
        )


def sign_client_secret(client_id: str, client_secret: str, timestamp: str) -> str:
    """bcrypt ``<client_id>_<timestamp>`` with the secret as salt, then base64."""
    password = f"{client_id}_{timestamp}".encode("utf-8")
    hashed = bcrypt.hashpw(password, client_secret.encode("utf-8"))
    return base64.b64encode(hashed).decode("ascii")


def _is_target_paid(item: dict, target_product_id: str) -> bool:
    return (str(item.get("productId")) == target_product_id
            and item.get("productOrderStatus") in PAID_STATUSES)


class NaverCommerceClient:
    """Looks up orders for the invitation product."""

    def __init__(self, credentials: Optional[CommerceCredentials] = None,
                 base_url: Optional[str] = None,
                 target_product_id: Optional[str] = None):
        self._credentials = credentials or CommerceCredentials.from_env()
        self.base_url = (base_url or os.getenv("NAVER_COMMERCE_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.target_product_id = target_product_id or os.getenv(
            "NAVER_COMMERCE_TARGET_PRODUCT_ID", DEFAULT_TARGET_PRODUCT_ID)

    @property
    def configured(self) -> bool:
        return bool(self._credentials.client_id and self._credentials.client_secret)

    def get_token(self) -> str:
        """Issue (or reuse) an OAuth2 client-credentials token."""
        creds = self._credentials
        if not self.configured:
            raise NaverCommerceError("Naver Commerce credentials are not configured")
        if creds.is_token_valid():
            return creds.access_token

        timestamp = str(int(time.time() * 1000))
        form = {
            "client_id": creds.client_id,
            "timestamp": timestamp,
            "grant_type": "client_credentials",
            "client_secret_sign": sign_client_secret(creds.client_id, creds.client_secret, timestamp),
            "type": creds.type,
        }
        if creds.type == "SELLER" and creds.account_id:
            form["account_id"] = creds.account_id

        resp = requests.post(f"{self.base_url}/oauth2/token", data=form, timeout=15)
        if not resp.ok:
            logger.error(f"Token request failed ({resp.status_code}): {resp.text}")
            raise NaverCommerceError(f"Token request failed with status {resp.status_code}")

        data = resp.json()
        creds.access_token = data["access_token"]
        creds.token_expires_at = time.time() + data.get("expires_in", 10800)
        return creds.access_token

    def _query_product_orders(self, product_order_ids: list[str]) -> Optional[list[dict]]:
        resp = requests.post(
            f"{self.base_url}/pay-order/seller/product-orders/query",
            json={"productOrderIds": product_order_ids},
            headers={"Authorization": f"Bearer {self.get_token()}"},
            timeout=15,
        )
        if not resp.ok:
            logger.error(f"Order query failed ({resp.status_code}): {resp.text}")
            return None
        return resp.json().get("data") or []

    def query_order(self, product_order_id: str) -> Optional[OrderInfo]:
        """Return the order if it is a paid order for the target product."""
        orders = self._query_product_orders([product_order_id])
        if not orders:
            return None

        item = orders[0]
        if str(item.get("productId")) != self.target_product_id:
            logger.warning(
                f"Order product {item.get('productId')} does not match target {self.target_product_id}")
            return None
        if item.get("productOrderStatus") not in PAID_STATUSES:
            logger.warning(f"Order status {item.get('productOrderStatus')} is not paid")
            return None
        return OrderInfo.from_api(item)

    def search_recent_orders(self, days: int = 7) -> list[OrderInfo]:
        """Paid target-product orders whose status changed in the last ``days``."""
        now = datetime.now(KST)
        params = {
            "from": (now - timedelta(days=days)).isoformat(timespec="seconds"),
            "to": now.isoformat(timespec="seconds"),
        }
        resp = requests.get(
            f"{self.base_url}/pay-order/seller/product-orders/last-changed-statuses",
            params=params,
            headers={"Authorization": f"Bearer {self.get_token()}"},
            timeout=15,
        )
        if not resp.ok:
            logger.error(f"Recent order lookup failed ({resp.status_code}): {resp.text}")
            return []

        changed = (resp.json().get("data") or {}).get("lastChangeStatuses") or []
        ids = [c["productOrderId"] for c in changed if c.get("productOrderId")]
        if not ids:
            return []

        orders = self._query_product_orders(ids) or []
        return [OrderInfo.from_api(o) for o in orders if _is_target_paid(o, self.target_product_id)]
