import logging
import os
from typing import Iterable, List, Optional, Protocol

import httpx
from pydantic import ValidationError

from .errors import CatalogUnavailable
from .schemas import ProductRef

logger = logging.getLogger(__name__)

CATALOG_URL = os.getenv("CATALOG_URL", "http://catalog:8000").rstrip("/")
CATALOG_TIMEOUT = float(os.getenv("CATALOG_TIMEOUT", "5"))

class ProductValidator(Protocol):
    def validate(self, product_ids: Iterable[str]) -> List[ProductRef]:
        """
        Return the products among `product_ids` that exist in the catalog.
        Unknown ids are omitted; the caller detects omissions.
        """
        ...

class HttpProductValidator:
    """Asks the catalog service which product ids exist, in one batched call."""

    def __init__(
        self,
        base_url: str = CATALOG_URL,
        timeout: float = CATALOG_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def validate(self, product_ids: Iterable[str]) -> List[ProductRef]:
        ids = sorted(set(product_ids))
        if not ids:
            return []
        url = f"{self.base_url}/products/validate"
        try:
            if self._client is not None:
                response = self._client.post(url, json={"ids": ids}, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(url, json={"ids": ids})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Catalog validation failed for %d product(s): %s", len(ids), exc)
            raise CatalogUnavailable(str(exc)) from exc

        if not isinstance(payload, list):
            raise CatalogUnavailable("catalog returned a non-list payload")
        try:
            return [ProductRef.model_validate(row) for row in payload]
        except ValidationError as exc:
            logger.warning("Catalog returned malformed products: %s", exc)
            raise CatalogUnavailable(f"malformed catalog response: {exc.error_count()} error(s)") from exc
