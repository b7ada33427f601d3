"""
Polar billing adapter.

Implements BillingPort over the Polar REST API with httpx. Organization
endpoints authenticate with the organization access token; customer portal
endpoints authenticate with the customer session token.

Files are uploaded in three steps: create the file (receiving a presigned
part URL), PUT the bytes to storage, then mark the upload completed with the
returned ETag.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from kiosk.core.entities import (
    BenefitGrant,
    Customer,
    CustomerSession,
    Downloadable,
    RemoteBenefit,
    RemoteProduct,
)
from kiosk.core.ports.billing import PAGE_SIZE, BillingError
from kiosk.rules.models import BillingRules

logger = logging.getLogger(__name__)

SERVER_URLS = {
    "production": "https://api.polar.sh",
    "sandbox": "https://sandbox-api.polar.sh",
}


def _query_params(filters: dict[str, Any]) -> dict[str, Any]:
    """Flatten list filters into Polar query params (metadata[key]=value)."""
    params: dict[str, Any] = {}
    for key, value in filters.items():
        if value is None:
            continue
        if key == "metadata":
            for meta_key, meta_value in value.items():
                params[f"metadata[{meta_key}]"] = str(meta_value)
        elif isinstance(value, bool):
            params[key] = "true" if value else "false"
        else:
            params[key] = value
    params.setdefault("limit", PAGE_SIZE)
    return params


class PolarBillingAdapter:
    """
    Billing adapter for the Polar API.

    Args:
        rules: Billing section of kiosk.yaml (token, organization, server)
        transport: Optional httpx transport (tests use httpx.MockTransport)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        rules: BillingRules,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.organization_id = rules.organization_id
        self.base_url = SERVER_URLS[rules.server]
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {rules.access_token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )
        # Presigned storage URLs must not receive the API token
        self._storage_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()
        await self._storage_client.aclose()

    async def __aenter__(self) -> PolarBillingAdapter:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        customer_token: str | None = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {customer_token}"} if customer_token else None
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Polar API error {status} on {method} {path}: {e.response.text[:500]}")
            raise BillingError(
                f"Polar API error: {status}",
                code=str(status),
                details={"method": method, "path": path, "body": e.response.text[:500]},
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Polar API request error on {method} {path}: {e}")
            raise BillingError(f"Request failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def _paginate(self, path: str, filters: dict[str, Any]) -> AsyncIterator[list[dict]]:
        params = _query_params(filters)
        page = 1
        while True:
            data = await self._request("GET", path, params={**params, "page": page})
            items = data.get("items", [])
            yield items
            max_page = data.get("pagination", {}).get("max_page", page)
            if page >= max_page or not items:
                return
            page += 1

    # --- Products ---

    async def list_products(self, filters: dict[str, Any]) -> AsyncIterator[list[RemoteProduct]]:
        async for items in self._paginate("/v1/products/", filters):
            yield [RemoteProduct.model_validate(item) for item in items]

    async def create_product(self, payload: dict[str, Any]) -> RemoteProduct:
        data = await self._request("POST", "/v1/products/", json=payload)
        return RemoteProduct.model_validate(data)

    async def update_product(self, product_id: str, payload: dict[str, Any]) -> RemoteProduct:
        data = await self._request("PATCH", f"/v1/products/{product_id}", json=payload)
        return RemoteProduct.model_validate(data)

    async def update_product_benefits(
        self, product_id: str, benefit_ids: list[str]
    ) -> RemoteProduct:
        data = await self._request(
            "POST", f"/v1/products/{product_id}/benefits", json={"benefits": list(benefit_ids)}
        )
        return RemoteProduct.model_validate(data)

    # --- Benefits ---

    async def list_benefits(self, filters: dict[str, Any]) -> AsyncIterator[list[RemoteBenefit]]:
        async for items in self._paginate("/v1/benefits/", filters):
            yield [RemoteBenefit.model_validate(item) for item in items]

    async def create_benefit(self, payload: dict[str, Any]) -> RemoteBenefit:
        data = await self._request("POST", "/v1/benefits/", json=payload)
        return RemoteBenefit.model_validate(data)

    async def update_benefit(self, benefit_id: str, payload: dict[str, Any]) -> RemoteBenefit:
        data = await self._request("PATCH", f"/v1/benefits/{benefit_id}", json=payload)
        return RemoteBenefit.model_validate(data)

    async def list_benefit_grants(
        self,
        benefit_id: str,
        *,
        customer_id: str,
        is_granted: bool = True,
        limit: int = 1,
    ) -> list[BenefitGrant]:
        data = await self._request(
            "GET",
            f"/v1/benefits/{benefit_id}/grants",
            params=_query_params(
                {"customer_id": customer_id, "is_granted": is_granted, "limit": limit}
            ),
        )
        return [BenefitGrant.model_validate(item) for item in data.get("items", [])]

    # --- Customers ---

    async def list_customers(self, filters: dict[str, Any]) -> AsyncIterator[list[Customer]]:
        async for items in self._paginate("/v1/customers/", filters):
            yield [Customer.model_validate(item) for item in items]

    async def create_customer_session(self, customer_id: str) -> CustomerSession:
        data = await self._request(
            "POST", "/v1/customer-sessions/", json={"customer_id": customer_id}
        )
        return CustomerSession.model_validate(data)

    async def get_customer(self, customer_token: str) -> Customer:
        data = await self._request(
            "GET", "/v1/customer-portal/customers/me", customer_token=customer_token
        )
        return Customer.model_validate(data)

    async def list_downloadables(
        self, customer_token: str, benefit_id: str, limit: int = 100
    ) -> list[Downloadable]:
        data = await self._request(
            "GET",
            "/v1/customer-portal/downloadables/",
            params={"benefit_id": benefit_id, "limit": limit},
            customer_token=customer_token,
        )
        return [Downloadable.model_validate(item) for item in data.get("items", [])]

    # --- Checkout / portal ---

    async def create_checkout(
        self,
        product_id: str,
        *,
        success_url: str,
        customer_email: str | None = None,
    ) -> str:
        body: dict[str, Any] = {"products": [product_id], "success_url": success_url}
        if customer_email:
            body["customer_email"] = customer_email
        data = await self._request("POST", "/v1/checkouts/", json=body)
        return data["url"]

    async def create_portal_url(self, customer_id: str, *, return_url: str) -> str:
        data = await self._request(
            "POST",
            "/v1/customer-sessions/",
            json={"customer_id": customer_id, "return_url": return_url},
        )
        return data["customer_portal_url"]

    # --- Files ---

    async def upload_file(self, *, name: str, mime_type: str, data: bytes) -> str:
        checksum = base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")
        size = len(data)

        created = await self._request(
            "POST",
            "/v1/files/",
            json={
                "name": name,
                "mime_type": mime_type,
                "size": size,
                "service": "downloadable",
                "checksum_sha256_base64": checksum,
                "upload": {
                    "parts": [
                        {
                            "number": 1,
                            "chunk_start": 0,
                            "chunk_end": size,
                            "checksum_sha256_base64": checksum,
                        }
                    ]
                },
            },
        )
        upload = created["upload"]
        part = upload["parts"][0]

        headers = dict(part.get("headers") or {})
        if not any(key.lower() == "x-amz-checksum-sha256" for key in headers):
            headers["x-amz-checksum-sha256"] = checksum

        try:
            response = await self._storage_client.put(part["url"], content=data, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise BillingError(
                f"Failed to upload file to storage: {e.response.status_code}. "
                f"Response: {e.response.text[:500]}",
                code=str(e.response.status_code),
            ) from e
        except httpx.RequestError as e:
            raise BillingError(f"Failed to upload file to storage: {e}") from e

        etag = response.headers.get("ETag", "").replace('"', "")
        if not etag:
            raise BillingError("No ETag returned from storage upload")

        await self._request(
            "POST",
            f"/v1/files/{created['id']}/uploaded",
            json={
                "id": upload["id"],
                "path": upload["path"],
                "parts": [
                    {
                        "number": part["number"],
                        "checksum_etag": etag,
                        "checksum_sha256_base64": part.get("checksum_sha256_base64") or checksum,
                    }
                ],
            },
        )
        logger.info(f"Uploaded {name} ({size} bytes) as {created['id']}")
        return created["id"]
