"""Request-scoped state shared by the deal pipeline and the contract workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ContractHandoff:
    """What a deal dropped into "signed" passes on to contract creation."""

    team_deal_id: int
    team_id: int
    team_name: str
    competition_id: int | None = None

    def as_query(self) -> dict[str, int]:
        return {"team_deal_id": self.team_deal_id}


@dataclass
class PipelineContext:
    """Everything the pipeline pages need for one request.

    Built per request, passed into ``DealPipeline`` and ``ContractManager``;
    collections are replaced wholesale whenever a mutation names them in its
    refetch list.
    """

    user_id: int
    players: list[Any] = field(default_factory=list)
    current_player: Any | None = None
    team_deals: list[Any] = field(default_factory=list)
    teams: list[Any] = field(default_factory=list)
    reminders: list[Any] = field(default_factory=list)
    notes: list[Any] = field(default_factory=list)
    handoff: ContractHandoff | None = None

    def clear_handoff(self) -> None:
        self.handoff = None
