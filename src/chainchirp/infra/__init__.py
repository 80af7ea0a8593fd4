"""Infrastructure layer: external system integration.

This layer wraps all interaction with httpx and the provider registry.
Every raw third-party exception must be caught here and re-raised as a
:class:`~chainchirp.exceptions.ChainchirpError` subclass.

Rules
-----
* No imports from ``cli``.
* No user-facing output (no ``print()``, no Rich rendering).
* Must expose clean, typed interfaces consumed by the core layer.
"""

from chainchirp.infra.providers import DEFAULT_PROVIDERS, build_providers

__all__: list[str] = [
    "DEFAULT_PROVIDERS",
    "build_providers",
]
