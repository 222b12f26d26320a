# copytrade/signals/signal_client.py
"""HTTP client for the agent position feed."""
import logging
from typing import Any

import httpx

from copytrade.exceptions import SignalSourceError
from copytrade.models.positions import SignalPosition

logger = logging.getLogger(__name__)


class SignalSourceClient:
    """Thin async wrapper around the signal source's account totals endpoint.

    The endpoint returns ``{"accountTotals": [...]}`` where each entry has a
    ``model_id`` and a ``positions`` mapping keyed by coin. The client does no
    trading logic, only fetching and parsing.
    """

    def __init__(
        self,
        base_url: str,
        positions_path: str = "/api/account-totals",
        timeout_sec: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._positions_path = positions_path
        self._timeout = timeout_sec
        self._transport = transport

    async def _get_account_totals(self, last_hourly_marker: int | None = None) -> list[dict]:
        url = f"{self._base_url}{self._positions_path}"
        params = {"lastHourlyMarker": last_hourly_marker} if last_hourly_marker is not None else None
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise SignalSourceError(f"Signal source request to {url} failed: {exc}") from exc

        if r.status_code != 200:
            raise SignalSourceError(
                f"Signal source returned {r.status_code} for {url}: {r.text[:200]}",
                status_code=r.status_code,
            )
        try:
            body = r.json()
        except ValueError as exc:
            raise SignalSourceError(f"Signal source returned invalid JSON: {exc}") from exc

        totals = body.get("accountTotals") if isinstance(body, dict) else None
        if not isinstance(totals, list):
            raise SignalSourceError("Signal source response has no accountTotals list")
        return totals

    async def list_agents(self, last_hourly_marker: int | None = None) -> list[str]:
        """Return the agent ids present in the feed."""
        totals = await self._get_account_totals(last_hourly_marker)
        return sorted({str(t["model_id"]) for t in totals if t.get("model_id")})

    async def fetch_positions(
        self, agent_id: str, last_hourly_marker: int | None = None
    ) -> list[SignalPosition]:
        """Fetch the latest positions reported for an agent.

        Args:
            agent_id: Agent (model) identifier.
            last_hourly_marker: Optional feed marker.

        Returns:
            Positions in the order the feed lists them; empty when the agent
            holds nothing.

        Raises:
            SignalSourceError: If the feed is unreachable, malformed, or does
                not list the agent.
        """
        totals = await self._get_account_totals(last_hourly_marker)
        entries = [t for t in totals if t.get("model_id") == agent_id]
        if not entries:
            raise SignalSourceError(f"Agent '{agent_id}' not found in signal source")

        latest = max(entries, key=lambda t: t.get("timestamp") or 0)
        raw_positions = latest.get("positions") or {}

        positions = []
        for key, raw in raw_positions.items():
            try:
                positions.append(self._parse_position(key, raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed position {key} for {agent_id}: {e}")
        return positions

    def _parse_position(self, key: str, raw: dict[str, Any]) -> SignalPosition:
        """Convert one feed position to a SignalPosition."""
        exit_plan = raw.get("exit_plan") or {}
        return SignalPosition(
            symbol=str(raw.get("symbol") or key),
            signed_quantity=float(raw["quantity"]),
            leverage=max(int(float(raw.get("leverage") or 1)), 1),
            margin=float(raw.get("margin") or 0.0),
            entry_price=float(raw["entry_price"]),
            current_price=float(raw.get("current_price") or raw["entry_price"]),
            entry_order_id=str(raw["entry_oid"]),
            take_profit_order_id=_optional_id(raw.get("tp_oid")),
            stop_loss_order_id=_optional_id(raw.get("sl_oid")),
            profit_target=_optional_float(exit_plan.get("profit_target")),
            stop_loss=_optional_float(exit_plan.get("stop_loss")),
        )


def _optional_id(value: Any) -> str | None:
    if value is None or str(value) == "-1":
        return None
    return str(value)


def _optional_float(value: Any) -> float | None:
    return float(value) if value is not None else None
