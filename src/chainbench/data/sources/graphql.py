from typing import Dict, Any, Optional
from ..http_client import post_json
from .base import ProviderError


async def graph_query(url: str, query: str, variables: Optional[Dict[str, Any]] = None,
                      headers: Optional[Dict[str, str]] = None, timeout: Optional[float] = None) -> Dict[str, Any]:
    """POST a GraphQL document and return its ``data`` object."""
    payload = await post_json(url, {"query": query, "variables": variables or {}}, headers=headers, timeout=timeout)
    if not isinstance(payload, dict):
        raise ProviderError("malformed GraphQL payload")
    errors = payload.get("errors")
    if errors:
        first = errors[0] if isinstance(errors, list) and errors else {}
        message = first.get("message") if isinstance(first, dict) else None
        raise ProviderError(f"GraphQL error: {message or 'unknown error'}")
    data = payload.get("data")
    if not isinstance(data, dict):
        raise ProviderError("malformed GraphQL payload")
    return data
