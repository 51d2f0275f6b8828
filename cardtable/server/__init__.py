"""
Request layer: message dispatch and the websocket transport.
"""

from cardtable.server.dispatcher import RequestDispatcher

__all__ = ["RequestDispatcher"]
