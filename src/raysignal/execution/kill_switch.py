"""Kill switch — emergency stop for automated trading.

Two triggers:
1. File-based: a "kill" file exists → trading halts at the next decision
2. Manual: ``activate()`` (or EMERGENCY_STOP=true at startup)

Monitoring and notifications continue while halted; only execution stops.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


class KillSwitch:
    """Emergency stop mechanism.

    Args:
        kill_file: 이 파일이 존재하면 거래 중단.
        active: 시작 시 활성 여부 (EMERGENCY_STOP).
    """

    def __init__(self, kill_file: str = "data/KILL_SWITCH", active: bool = False):
        self.kill_file = Path(kill_file)
        self._activated = False
        self._reason: str = ""
        self._activation_time: datetime | None = None
        if active:
            self._activated = True
            self._reason = "EMERGENCY_STOP set at startup"
            self._activation_time = datetime.now(tz=timezone.utc)

    @property
    def is_active(self) -> bool:
        """Check if kill switch is activated (any trigger)."""
        if self._activated:
            return True

        if self.kill_file.exists():
            self._activated = True
            self._reason = f"Kill file detected: {self.kill_file}"
            self._activation_time = datetime.now(tz=timezone.utc)
            logger.critical("🛑 KILL SWITCH: %s", self._reason)
            return True

        return False

    @property
    def reason(self) -> str:
        return self._reason

    def activate(self, reason: str = "Manual emergency stop") -> None:
        """긴급 정지. 재시작 후에도 유지되도록 kill 파일 생성."""
        self._activated = True
        self._reason = reason
        self._activation_time = datetime.now(tz=timezone.utc)
        logger.critical("🚨 EMERGENCY STOP - Halting all trading activity: %s", reason)

        try:
            self.kill_file.parent.mkdir(parents=True, exist_ok=True)
            self.kill_file.write_text(
                f"Activated: {self._activation_time.isoformat()}\n"
                f"Reason: {reason}\n"
            )
        except OSError as exc:
            logger.warning("Could not persist kill file %s: %s", self.kill_file, exc)

    def deactivate(self) -> None:
        """거래 재개. kill 파일도 삭제."""
        self._activated = False
        self._reason = ""
        self._activation_time = None

        try:
            if self.kill_file.exists():
                self.kill_file.unlink()
        except OSError as exc:
            logger.warning("Could not remove kill file %s: %s", self.kill_file, exc)

        logger.info("Resuming trading operations")

    def status(self) -> dict:
        return {
            "active": self.is_active,
            "reason": self._reason,
            "activation_time": (
                self._activation_time.isoformat() if self._activation_time else None
            ),
            "kill_file": str(self.kill_file),
        }
