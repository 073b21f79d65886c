"""
Interfaces of the external collaborators that side-effecting blocks call into.

The engine never talks to the network itself; it hands a ``RuntimeServices``
bundle to every behavior. Implementations of :class:`ProtocolClient` must let
``asyncio.CancelledError`` propagate out of their calls so that cancelling a
run aborts in-flight requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from shared.config import config as default_config


class _ResultModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class Invoice(_ResultModel):
    invoice: str
    payment_hash: Optional[str] = None
    amount: int


class PaymentResponse(_ResultModel):
    status: str = Field(description="approved | rejected | failed | timeout")
    payment_id: Optional[str] = None
    reason: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.status.lower() in {"approved", "success", "paid"}


class TicketResponse(_ResultModel):
    success: bool
    num_tickets: int = 0
    token: Optional[str] = None
    error: Optional[str] = None


class SendResponse(_ResultModel):
    transaction_id: str
    status: str = "sent"


@runtime_checkable
class ProtocolClient(Protocol):
    async def wait_for_key_handshake(self, token: str, timeout: Optional[float]) -> Any:
        """Suspend until a handshake for ``token`` arrives; raise TimeoutError if it does not."""

    async def create_invoice(self, amount: int, description: str) -> Invoice:
        ...

    async def request_single_payment(
        self,
        recipient_key: str,
        amount: int,
        invoice: Invoice,
        description: str,
    ) -> PaymentResponse:
        ...

    async def request_ticket(
        self,
        recipient_key: str,
        mint_url: str,
        unit: str,
        amount: int,
    ) -> TicketResponse:
        ...

    async def mint_token(self, mint_url: str, unit: str, amount: int) -> str:
        ...

    async def send_token(self, recipient_key: str, token: str) -> SendResponse:
        ...


@dataclass(frozen=True)
class RuntimeServices:
    protocol: ProtocolClient
    handshake_timeout: Optional[float] = None
    payment_description: str = "Automation payment request"

    @classmethod
    def from_config(cls, protocol: ProtocolClient) -> "RuntimeServices":
        return cls(
            protocol=protocol,
            handshake_timeout=default_config.handshake_timeout_seconds,
            payment_description=default_config.payment_description,
        )


__all__ = [
    "Invoice",
    "PaymentResponse",
    "ProtocolClient",
    "RuntimeServices",
    "SendResponse",
    "TicketResponse",
]
