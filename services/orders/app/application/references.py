import httpx
from shared.core import get_logger
from typing import Optional

logger = get_logger(__name__)


class ReferenceResolver:
    """Resolves the product and user ids held by orders.

    Products and users are owned by their own services, orders only keep
    their ids. A reference that cannot be resolved (deleted entity or
    unreachable service) resolves to None so reads keep working.
    Lookups are memoised for the lifetime of the resolver, which is one
    request.
    """

    def __init__(self, client: httpx.Client, products_url: str, users_url: str):
        self.client = client
        self.products_url = products_url.rstrip("/")
        self.users_url = users_url.rstrip("/")
        self._cache: dict[str, Optional[dict]] = {}

    def _fetch(self, url: str) -> Optional[dict]:
        if url in self._cache:
            return self._cache[url]
        data = None
        try:
            response = self.client.get(url)
            if response.status_code == 200:
                data = response.json()
            elif response.status_code != 404:
                logger.warning(f"Reference lookup {url} returned {response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Reference lookup {url} failed: {e}")
        self._cache[url] = data
        return data

    def product(self, product_id: int) -> Optional[dict]:
        return self._fetch(f"{self.products_url}/products/{product_id}")

    def user(self, user_id: int) -> Optional[dict]:
        return self._fetch(f"{self.users_url}/users/{user_id}")
