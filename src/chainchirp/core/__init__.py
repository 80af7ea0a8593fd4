"""Core layer: fetching, caching, diffing and the command runner.

Rules
-----
* No ``print()`` calls.
* No direct network I/O; HTTP goes through the ``JsonTransport`` protocol.
* No imports from ``cli``, ``infra`` or ``services``.
* All functions must be fully typed and deterministic given their inputs.
"""

from chainchirp.core.cache import CacheLayer, make_key
from chainchirp.core.diff import compute_delta, field_delta
from chainchirp.core.envelope import capture
from chainchirp.core.fetch_client import FetchClient, RequestOptions
from chainchirp.core.models import ErrorInfo, FailureRecord, ProviderSpec, ResultEnvelope
from chainchirp.core.protocols import JsonTransport, Output
from chainchirp.core.runner import CommandRunner, CommandSpec, RunMode, RunOptions, select_mode

__all__: list[str] = [
    "CacheLayer",
    "CommandRunner",
    "CommandSpec",
    "ErrorInfo",
    "FailureRecord",
    "FetchClient",
    "JsonTransport",
    "Output",
    "ProviderSpec",
    "RequestOptions",
    "ResultEnvelope",
    "RunMode",
    "RunOptions",
    "capture",
    "compute_delta",
    "field_delta",
    "make_key",
    "select_mode",
]
