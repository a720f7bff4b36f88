# /pp_fee_updater/core/kill.py
# Operator kill switch. While the switch file exists no update transaction
# is broadcast; reads and pending reconciliation keep running.
import os
from datetime import datetime, timezone

from pp_fee_updater.core.config import settings
from pp_fee_updater.core.errors import TransactionKillSwitchError
from pp_fee_updater.core.logger import get_logger

log = get_logger(__name__)


class KillSwitchActiveError(TransactionKillSwitchError):
    pass


def _switch_file() -> str:
    return settings.KILL_SWITCH_FILE


def is_kill_switch_active() -> bool:
    return os.path.exists(_switch_file())


def check():
    """Raises KillSwitchActiveError when the switch is engaged."""
    if is_kill_switch_active():
        log.critical("KILL_SWITCH_ACTIVE", file=_switch_file())
        raise KillSwitchActiveError("Kill switch is active. Halting transaction.")


def activate_kill_switch(reason: str):
    timestamp = datetime.now(timezone.utc).isoformat()
    content = f"ACTIVATED at {timestamp}\nREASON: {reason}\n"
    with open(_switch_file(), "w") as f:
        f.write(content)
    log.critical("KILL_SWITCH_ACTIVATED", reason=reason, file=_switch_file())


def deactivate_kill_switch():
    try:
        os.remove(_switch_file())
    except FileNotFoundError:
        return
    log.warning("KILL_SWITCH_DEACTIVATED", file=_switch_file())
