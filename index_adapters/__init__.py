"""
Index Adapters Package.

Clients for the full-node index service the wallet reads UTXOs,
assets and address history from.
"""

from index_adapters.base import BaseIndexAdapter
from index_adapters.blockbook import BlockbookAdapter
from index_adapters.exceptions import FetchError, IndexServiceError, RateLimitError


__all__ = [
    "BaseIndexAdapter",
    "BlockbookAdapter",
    "FetchError",
    "IndexServiceError",
    "RateLimitError",
]
