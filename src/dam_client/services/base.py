"""Shared plumbing for the domain services."""
from typing import Any, List

from dam_client.cache import QueryCache
from dam_client.errors import ValidationError
from dam_client.http_client import ApiClient


class BaseService:
    """Holds the API client and the query cache shared by every service."""

    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache

    def _get_all(self, path: str) -> List[Any]:
        """GET a list endpoint and follow `next` links until the last page."""
        data = self.api.get(path)
        results = list(unwrap_results(data))
        while isinstance(data, dict) and data.get("next"):
            data = self.api.get(data["next"])
            results.extend(unwrap_results(data))
        return results


def unwrap_results(data: Any) -> List[Any]:
    """Accept either a paginated envelope or a bare list."""
    if isinstance(data, dict) and "results" in data:
        return data["results"]
    if isinstance(data, list):
        return data
    return []


def require_text(value: Any, field: str) -> str:
    """Reject empty or whitespace-only input before it reaches the API."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()
