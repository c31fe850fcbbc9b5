# Registry/Domain/query_encoder.py
from typing import Any, List, Mapping, Tuple

import httpx


def _as_query_value(value: Any) -> str:
    # bool first: it is a subclass of int
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def query_pairs(params: Mapping[str, Any]) -> List[Tuple[str, str]]:
    """Defined (non-None) entries of `params`, in insertion order, as string pairs."""
    return [(key, _as_query_value(value)) for key, value in params.items() if value is not None]


def encode_query(params: Mapping[str, Any]) -> str:
    """
    URL-encode a tool's parameter mapping into a query string.

    Entries whose value is None are dropped; every other entry appears once,
    in the order of the mapping. No validation happens here: the tool schema
    has already checked ranges and enums.
    """
    return str(httpx.QueryParams(query_pairs(params)))


def build_url(path: str, params: Mapping[str, Any]) -> str:
    query = encode_query(params)
    return f"{path}?{query}" if query else path
