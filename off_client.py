"""Product lookup via the Open Food Facts API."""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

import config

logger = logging.getLogger(__name__)

PRODUCT_PATH = "/api/v2/product/{code}.json"

# Fields we render, keeps the response small
PRODUCT_FIELDS = "code,product_name,serving_size,nutriments,selected_images,image_front_url"


class ProductLookupError(Exception):
    """The product database could not be queried."""


class ProductNotFound(ProductLookupError):
    def __init__(self, code: str):
        super().__init__(f"No Open Food Facts product for code {code!r}")
        self.code = code


class OpenFoodFactsClient:
    """Thin async wrapper over the Open Food Facts v2 product endpoint."""

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    @classmethod
    def from_config(cls) -> "OpenFoodFactsClient":
        return cls(httpx.AsyncClient(
            base_url=config.OFF_BASE_URL,
            timeout=config.OFF_TIMEOUT,
            headers={"User-Agent": config.OFF_USER_AGENT},
        ))

    async def aclose(self) -> None:
        await self.http.aclose()

    async def product(self, code: str) -> Dict[str, Any]:
        """Fetch the ``product`` object for a barcode.

        Raises ProductNotFound when the database has no such product (or the
        code is not numeric), ProductLookupError for any other failure.
        """
        if not code.isdigit():
            raise ProductNotFound(code)

        try:
            resp = await self.http.get(
                PRODUCT_PATH.format(code=code),
                params={"fields": PRODUCT_FIELDS},
            )
        except httpx.HTTPError as e:
            raise ProductLookupError(f"Open Food Facts request failed: {e}") from e

        if resp.status_code == 404:
            raise ProductNotFound(code)
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProductLookupError(
                f"Open Food Facts answered {resp.status_code} for {code}"
            ) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise ProductLookupError("Open Food Facts returned invalid JSON") from e

        if not isinstance(data, dict):
            raise ProductLookupError("Open Food Facts returned an unexpected payload")

        product = data.get("product")
        if data.get("status") != 1 or not isinstance(product, dict):
            logger.info("No Open Food Facts hit for barcode %s", code)
            raise ProductNotFound(code)

        logger.info("Open Food Facts hit for %s: %s", code, product.get("product_name", ""))
        return product
