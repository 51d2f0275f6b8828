"""
cardtable: a server for concurrent multiplayer twenty-one sessions.
"""

from cardtable.config import ServiceConfig
from cardtable.service import GameService

__version__ = "0.1.0"

__all__ = ["GameService", "ServiceConfig", "__version__"]
