"""
GatewayClient — the part of the provider's REST API checkout needs.

Implementations talk to the provider and raise on transport or API
failure; callers wrap them with `combinators.lift.catching_async`.
"""

from __future__ import annotations

from typing import Protocol

from settle.gateway._types import GatewayOrder


class GatewayClient(Protocol):
    async def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> GatewayOrder:
        """Open a gateway order the hosted checkout will pay into."""
        ...


__all__ = ("GatewayClient",)
