"""Domain operations built on the fetch client and the cache layer.

Rules
-----
* No ``print()`` and no Rich rendering.
* Only raise :class:`~chainchirp.exceptions.ChainchirpError` subclasses.
* Provider chains are named by id; base URLs live in ``infra.providers``.
"""

from chainchirp.services.chain import ChainService
from chainchirp.services.market import MarketService

__all__: list[str] = [
    "ChainService",
    "MarketService",
]
