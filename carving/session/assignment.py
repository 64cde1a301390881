"""Mapping of boot sides to sensor identities."""

import logging
from typing import Dict, Optional

from ..core.types import SensorSide

logger = logging.getLogger(__name__)


class SensorAssignment:
    """Which sensor identity is mounted on which boot.

    A single sensor occupies the left slot; looking up the single side
    resolves to the left identity.
    """

    def __init__(self, left: Optional[str] = None, right: Optional[str] = None):
        self._slots: Dict[SensorSide, Optional[str]] = {
            SensorSide.LEFT: left,
            SensorSide.RIGHT: right,
        }

    def assign(self, side: SensorSide, identity: str) -> None:
        """Assign a sensor identity to a side.

        Assigning the single side takes the left slot and clears the
        right one.
        """
        if side is SensorSide.SINGLE:
            self._slots[SensorSide.LEFT] = identity
            self._slots[SensorSide.RIGHT] = None
        else:
            self._slots[side] = identity
        logger.info("Assigned sensor %s to %s side", identity, side.value)

    def identity_for(self, side: SensorSide) -> Optional[str]:
        """Sensor identity for a side, None if unassigned."""
        if side is SensorSide.SINGLE:
            side = SensorSide.LEFT
        return self._slots[side]

    def side_of(self, identity: str) -> Optional[SensorSide]:
        """Side a sensor identity is assigned to."""
        for side, assigned in self._slots.items():
            if assigned == identity:
                return side
        return None

    @property
    def left(self) -> Optional[str]:
        return self._slots[SensorSide.LEFT]

    @property
    def right(self) -> Optional[str]:
        return self._slots[SensorSide.RIGHT]

    def clear(self) -> None:
        self._slots = {SensorSide.LEFT: None, SensorSide.RIGHT: None}

    def to_dict(self) -> dict:
        return {"left": self.left, "right": self.right}

    @classmethod
    def from_dict(cls, data: dict) -> "SensorAssignment":
        return cls(left=data.get("left"), right=data.get("right"))
