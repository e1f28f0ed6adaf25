from fastapi import WebSocket, status
from typing import Optional, Dict, Any, Callable, Awaitable
import asyncio
import json
from pubsub import pub
from app.config import logger
from app.core.security import verify_access_token


class AuthenticatedWebSocket:
    """A notification channel for one user, authenticated with an access token."""

    def __init__(self, websocket: WebSocket, auth_timeout: int = 15):
        self.websocket = websocket
        self.auth_timeout = auth_timeout
        self.user_id: Optional[str] = None
        self.authenticated = False
        self.timeout_task: Optional[asyncio.Task] = None
        self.closed = False

    async def accept(self):
        """Accept the connection and start the authentication timeout."""
        await self.websocket.accept()
        self.timeout_task = asyncio.create_task(self._authentication_timeout())

        token = self.websocket.query_params.get("token")
        if token:
            await self.authenticate(token)

    async def authenticate(self, token: str) -> bool:
        user_id = verify_access_token(token)
        if not user_id:
            logger.error("WebSocket connection rejected: Invalid token")
            await self.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
            return False

        logger.info(f"WebSocket token verified successfully for user {user_id}")
        self.user_id = user_id
        self.authenticated = True
        if self.timeout_task and not self.timeout_task.done():
            self.timeout_task.cancel()
        pub.sendMessage("user_authenticated", user_id=user_id, connection=self)
        return True

    async def _authentication_timeout(self):
        try:
            await asyncio.sleep(self.auth_timeout)
            if not self.authenticated and not self.closed:
                logger.warning(f"WebSocket authentication timeout after {self.auth_timeout} seconds")
                await self.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication timeout")
        except asyncio.CancelledError:
            pass

    async def close(self, code: int = status.WS_1000_NORMAL_CLOSURE, reason: str = "Connection closed"):
        if not self.closed:
            try:
                await self.websocket.close(code=code, reason=reason)
            except RuntimeError as e:
                logger.error(f"Error closing WebSocket: {str(e)}")
            self.closed = True
        if self.timeout_task and not self.timeout_task.done():
            self.timeout_task.cancel()

    async def send_json(self, data: Dict[str, Any]):
        await self.websocket.send_json(data)

    async def handle_messages(self, message_handler: Callable[[Dict[str, Any], "AuthenticatedWebSocket"], Awaitable[None]]):
        """Dispatch incoming messages until the client goes away."""
        try:
            while not self.closed:
                data = await self.websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    logger.warning(f"Received non-JSON message: {data[:50]}...")
                    continue

                if not self.authenticated and message.get("type") == "authenticate" and "token" in message:
                    if not await self.authenticate(message["token"]):
                        break
                elif self.authenticated:
                    await message_handler(message, self)
                else:
                    logger.warning("Received message before authentication")
        except Exception as e:
            logger.error(f"Error handling WebSocket messages: {str(e)}")
            await self.close(code=status.WS_1011_INTERNAL_ERROR, reason="Internal error")
