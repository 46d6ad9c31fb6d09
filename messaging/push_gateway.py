"""Push-messaging gateways used by the notification dispatcher."""

from __future__ import annotations

import json
from pathlib import Path
from threading import Lock
from typing import Optional, Protocol

import httpx
from pydantic import BaseModel

from services.errors import DispatchError
from settings import Settings


class PushNotification(BaseModel):
    title: str
    body: str


class PushMessage(BaseModel):
    """A single device-targeted push message."""

    notification: PushNotification
    token: str


class PushGateway(Protocol):
    async def send(self, message: PushMessage) -> str:
        """Deliver ``message`` and return the gateway's message id.

        Raises ``DispatchError`` when the gateway refuses the message.
        """
        ...


class HttpPushGateway:
    """Sends messages to an FCM-style HTTP endpoint, one request per message."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        auth_token: Optional[str] = None,
    ) -> None:
        self._client = client
        self.url = url
        self._auth_token = auth_token

    async def send(self, message: PushMessage) -> str:
        headers = {}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        try:
            response = await self._client.post(
                self.url,
                json={"message": message.model_dump()},
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DispatchError(
                message.token, f"gateway responded {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise DispatchError(message.token, str(exc) or type(exc).__name__) from exc

        try:
            payload = response.json()
        except ValueError:
            return ""
        name = payload.get("name") if isinstance(payload, dict) else None
        return name if isinstance(name, str) else ""


class OutboxPushGateway:
    """Records messages locally instead of delivering them.

    Used when no gateway URL is configured; when ``outbox_path`` is set each
    message is appended to it as one JSON line.
    """

    def __init__(self, outbox_path: Optional[Path] = None) -> None:
        self.outbox_path = outbox_path
        self.sent: list[PushMessage] = []
        self._lock = Lock()
        if outbox_path:
            outbox_path.parent.mkdir(parents=True, exist_ok=True)

    async def send(self, message: PushMessage) -> str:
        if not message.token.strip():
            raise DispatchError(message.token, "empty push token")
        with self._lock:
            self.sent.append(message.model_copy(deep=True))
            message_id = f"outbox/{len(self.sent)}"
            if self.outbox_path:
                try:
                    with self.outbox_path.open("a", encoding="utf-8") as handle:
                        handle.write(json.dumps(message.model_dump()) + "\n")
                except OSError as exc:
                    raise DispatchError(message.token, str(exc)) from exc
        return message_id


def build_push_gateway(settings: Settings, client: httpx.AsyncClient) -> PushGateway:
    if settings.push_gateway_url:
        return HttpPushGateway(
            client=client,
            url=settings.push_gateway_url,
            auth_token=settings.push_gateway_token,
        )
    outbox = Path(settings.push_outbox_path) if settings.push_outbox_path else None
    return OutboxPushGateway(outbox_path=outbox)
