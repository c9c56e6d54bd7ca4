"""URL model: parsing, typed query parameters and serialization."""

from src.features.address.address import Address, remove_dot_segments
from src.features.address.query import (
    QueryParameters,
    coerce_value,
    parse_query,
    serialize_query,
)


__all__ = [
    # Address
    "Address",
    "remove_dot_segments",
    # Query
    "QueryParameters",
    "coerce_value",
    "parse_query",
    "serialize_query",
]
