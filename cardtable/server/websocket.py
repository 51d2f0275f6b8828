"""
WebSocket transport for the cardtable server.

Clients open a connection, bind their verified identity with a ``connect``
message, then send ``request`` messages that are passed to the
`RequestDispatcher`. Domain events for games the client has touched, and
invitations addressed to it, are pushed back as ``event`` messages.

Dispatching runs in worker threads so that a request waiting on one game's
lock never stalls the event loop for everyone else.
"""

import asyncio
import json
import logging
import signal
import time
import uuid
from typing import Any, Dict, Optional, Set

import websockets

from cardtable.events import EventPriority
from cardtable.server.dispatcher import RequestDispatcher
from cardtable.service import GameService

logger = logging.getLogger("cardtable.server.websocket")


class ClientMessage:
    """Message types that clients can send to the server."""

    CONNECT = "connect"
    REQUEST = "request"
    HEARTBEAT = "heartbeat"


class ServerMessage:
    """Message types that the server can send to clients."""

    CONNECTED = "connected"
    RESPONSE = "response"
    EVENT = "event"
    ERROR = "error"
    HEARTBEAT = "heartbeat"


class WebSocketClient:
    """
    A connected client and the games it follows.
    """

    def __init__(self, client_id: str, websocket):
        self.id = client_id
        self.websocket = websocket
        self.identity: Optional[str] = None
        self.games: Set[str] = set()
        self.connected_at = time.time()
        self.last_activity = time.time()

    def wants(self, event_type: str, data: Dict[str, Any]) -> bool:
        if self.identity is None:
            return False
        if event_type.startswith("INVITATION_"):
            return data.get("invitee_email") == self.identity or data.get("game_id") in self.games
        return data.get("game_id") in self.games

    async def send(self, message_type: str, data: Dict[str, Any], **extra) -> None:
        message = {"type": message_type, "data": data, "timestamp": time.time()}
        message.update(extra)
        await self.websocket.send(json.dumps(message))
        self.last_activity = time.time()


class WebSocketServer:
    """
    WebSocket server exposing a `GameService`.

    Attributes:
        service: The game service requests are applied to
        dispatcher: Routes requests to the service
        clients: Connected clients by id
    """

    def __init__(self, service: GameService, host: Optional[str] = None, port: Optional[int] = None):
        self.service = service
        self.dispatcher = RequestDispatcher(service)
        self.host = host or service.config.host
        self.port = service.config.port if port is None else port
        self.clients: Dict[str, WebSocketClient] = {}
        self.running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Future] = None
        self._unsubscribe = None
        self._sweep_task: Optional[asyncio.Task] = None
        self._push_tasks: Set[asyncio.Task] = set()

    async def start(self) -> None:
        """Serve until `shutdown` is called or the process receives SIGINT/SIGTERM."""
        self._loop = asyncio.get_running_loop()
        self._stop = self._loop.create_future()
        self._unsubscribe = self.service.events.on_any(self._on_event, EventPriority.LOW)

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, lambda: asyncio.create_task(self.shutdown()))
            except (NotImplementedError, RuntimeError):
                # Not available off the main thread or on some platforms
                pass

        if self.service.config.sweep_interval_seconds > 0:
            self._sweep_task = asyncio.create_task(
                self._sweep_loop(self.service.config.sweep_interval_seconds)
            )

        async with websockets.serve(self.handle_client, self.host, self.port):
            self.running = True
            logger.info(f"WebSocket server started on ws://{self.host}:{self.port}")
            await self._stop
        logger.info("WebSocket server stopped")

    async def shutdown(self) -> None:
        """Stop serving and release event subscriptions."""
        if not self.running:
            return
        logger.info("Shutting down WebSocket server...")
        self.running = False
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        if self._stop and not self._stop.done():
            self._stop.set_result(None)

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await asyncio.to_thread(self.service.sweep)
            except Exception:
                logger.error("Periodic sweep failed", exc_info=True)

    def _on_event(self, payload) -> None:
        """Event bus listener; may be called from worker threads."""
        event_type, data = payload
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._fan_out, event_type, data)

    def _fan_out(self, event_type: str, data: Dict[str, Any]) -> None:
        for client in list(self.clients.values()):
            if client.wants(event_type, data):
                task = asyncio.create_task(self._push(client, event_type, data))
                self._push_tasks.add(task)
                task.add_done_callback(self._push_done)

    async def _push(self, client: WebSocketClient, event_type: str, data: Dict[str, Any]) -> None:
        try:
            await client.send(ServerMessage.EVENT, {"event_type": event_type, "data": data})
        except websockets.ConnectionClosed:
            logger.debug(f"Dropped event for closed client {client.id}")

    def _push_done(self, task: asyncio.Task) -> None:
        self._push_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Failed to push event: {exc}", exc_info=exc)

    async def handle_client(self, websocket) -> None:
        """
        Serve one connection until it closes.

        Args:
            websocket: WebSocket connection
        """
        client = WebSocketClient(str(uuid.uuid4()), websocket)
        self.clients[client.id] = client
        logger.info(f"Client {client.id} connected")
        try:
            async for raw in websocket:
                reply = await self.handle_message(client, raw)
                if reply is not None:
                    await websocket.send(json.dumps(reply))
        except websockets.ConnectionClosed:
            pass
        finally:
            self.clients.pop(client.id, None)
            logger.info(f"Client {client.id} disconnected")

    async def handle_message(self, client: WebSocketClient, raw) -> Optional[Dict[str, Any]]:
        """
        Handle one raw message from a client.

        Returns:
            The reply to send back
        """
        client.last_activity = time.time()
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            return {"type": ServerMessage.ERROR, "data": {"message": "Invalid JSON"}}
        if not isinstance(message, dict):
            return {"type": ServerMessage.ERROR, "data": {"message": "Invalid message"}}

        message_type = message.get("type", "")
        data = message.get("data") or {}

        if message_type == ClientMessage.CONNECT:
            # Identity arrives already verified by the fronting auth layer.
            email = data.get("email") if isinstance(data, dict) else None
            if not isinstance(email, str) or not email:
                return {"type": ServerMessage.ERROR, "data": {"message": "Field 'email' is required"}}
            client.identity = email
            return {
                "type": ServerMessage.CONNECTED,
                "data": {"client_id": client.id, "email": email},
            }

        if message_type == ClientMessage.HEARTBEAT:
            return {"type": ServerMessage.HEARTBEAT, "data": {"timestamp": time.time()}}

        if message_type == ClientMessage.REQUEST:
            request = {"action": message.get("action"), "data": data}
            response = await asyncio.to_thread(self.dispatcher.handle, client.identity, request)
            self._follow(client, request, response)
            reply = {"type": ServerMessage.RESPONSE, "request_id": message.get("request_id")}
            reply.update(response)
            return reply

        logger.warning(f"Unknown message type from client {client.id}: {message_type}")
        return {"type": ServerMessage.ERROR, "data": {"message": "Unknown message type"}}

    @staticmethod
    def _follow(client: WebSocketClient, request: Dict[str, Any], response: Dict[str, Any]) -> None:
        """Subscribe the client to games it successfully acted on."""
        if not response.get("ok"):
            return
        data = request.get("data")
        game_id = data.get("game_id") if isinstance(data, dict) else None
        game_id = game_id or response["data"].get("game_id")
        if isinstance(game_id, str):
            client.games.add(game_id)
