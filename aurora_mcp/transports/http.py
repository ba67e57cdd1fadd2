from __future__ import annotations

from typing import Optional, Union

from ..models import ToolRequest, ToolResponse, decode_request
from ..sessions import TransportKind
from .base import Transport


class HttpExchange(Transport):
    """A single HTTP request/response exchange seen as a one-shot channel."""

    kind = TransportKind.HTTP

    def __init__(self, body: Union[str, bytes]) -> None:
        self._body = body
        self._consumed = False
        self.response: Optional[ToolResponse] = None

    async def receive(self) -> Optional[ToolRequest]:
        if self._consumed:
            return None
        self._consumed = True
        return decode_request(self._body)

    async def send(self, response: ToolResponse) -> None:
        self.response = response

    def connection_lost(self) -> None:
        self._consumed = True
