"""Domain exceptions raised by the service layer and mapped to HTTP by routes."""

from __future__ import annotations


class NotFoundError(Exception):
    """A row does not exist or is not owned by the requesting agent."""

    def __init__(self, entity: str, entity_id: int | None = None):
        self.entity = entity
        self.entity_id = entity_id
        label = entity.replace("_", " ").capitalize()
        super().__init__(
            f"{label} {entity_id} not found." if entity_id is not None else f"{label} not found."
        )


class ValidationError(Exception):
    """User input failed validation; nothing was written."""


class InvalidTransitionError(Exception):
    """A state move is not in the transition table or was computed from stale state."""

    def __init__(self, kind: str, from_state: str, to_state: str, *, stale: bool = False):
        self.kind = kind
        self.from_state = from_state
        self.to_state = to_state
        self.stale = stale
        if stale:
            message = f"The {kind} changed to another state in the meantime; reload and retry."
        else:
            message = f"Cannot move {kind} from '{from_state}' to '{to_state}'."
        super().__init__(message)


class ContractManagerUnavailable(Exception):
    """The contract workflow cannot be opened for a signed deal."""
