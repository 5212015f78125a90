from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class SendResult:
    success: bool
    provider_message_id: str | None = None
    error: str | None = None

    def __bool__(self) -> bool:
        return self.success


class MessageTransport(Protocol):
    channel_name: str

    def send(self, phone: str, message: str) -> SendResult: ...
