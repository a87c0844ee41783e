"""In-memory booking flow state, one record per conversation."""

import logging
from dataclasses import fields
from typing import Any, Optional

from .types import BookingFlowState, BookingStage

logger = logging.getLogger(__name__)

_FLOW_FIELDS = frozenset(f.name for f in fields(BookingFlowState))


class FlowStateStore:
    """
    Keyed table of BookingFlowState records.

    Records are created lazily and mutated in place. There is no
    eviction: callers reset a key when its conversation is closed.
    Single writer per key is assumed (one chat turn at a time).
    """

    def __init__(self):
        """Initialize empty store."""
        self._flows: dict[str, BookingFlowState] = {}

    def __len__(self) -> int:
        return len(self._flows)

    def __contains__(self, key: str) -> bool:
        return key in self._flows

    def get(self, key: str) -> BookingFlowState:
        """Get the flow for a conversation, creating an idle one if needed."""
        flow = self._flows.get(key)
        if flow is None:
            flow = BookingFlowState()
            self._flows[key] = flow
        return flow

    def peek(self, key: str) -> Optional[BookingFlowState]:
        """Get the flow without creating it."""
        return self._flows.get(key)

    def update(self, key: str, **patch: Any) -> BookingFlowState:
        """Shallow-merge fields into a conversation's flow.

        Raises:
            AttributeError: If a field name is not part of BookingFlowState
        """
        unknown = set(patch) - _FLOW_FIELDS
        if unknown:
            raise AttributeError(f"Unknown flow fields: {', '.join(sorted(unknown))}")

        flow = self.get(key)
        previous_stage = flow.stage
        for name, value in patch.items():
            setattr(flow, name, value)

        if flow.stage != previous_stage:
            logger.info(
                f"Booking flow {key}: {previous_stage.value} -> {flow.stage.value}"
            )
        return flow

    def dismiss(self, key: str) -> BookingFlowState:
        """Decline the flow without completing it."""
        return self.update(key, active=False, stage=BookingStage.DECLINED, completed=False)

    def reset(self, key: str) -> bool:
        """Remove a conversation's flow entirely.

        Returns:
            True if a record existed
        """
        existed = self._flows.pop(key, None) is not None
        if existed:
            logger.debug(f"Booking flow {key} reset")
        return existed


# Process-wide store for the HTTP wiring; tests build their own
_store: Optional[FlowStateStore] = None


def get_flow_store() -> FlowStateStore:
    """Get singleton FlowStateStore."""
    global _store
    if _store is None:
        _store = FlowStateStore()
    return _store
