"""chainchirp: Bitcoin chain and market data in the terminal.

Every command is a single fetch-and-render operation driven by one
runner in four modes: once or watch, human or JSON.
"""

from chainchirp.version import __version__

__all__: list[str] = ["__version__"]
