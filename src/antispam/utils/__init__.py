"""
Utility modules for the anti-spam bot.

Provides:
- logging: Logging setup with secret filtering
- options: Spam monitor options and ignore lists
- ledger: In-memory activity and message log
- escalation: Warn/kick/ban state machine
- formatting: Notice templates
- events: Lifecycle event emitter
- dispatcher: Moderation actions
- monitor: The spam monitor
"""

from antispam.utils.logging import get_logger, setup_logging
from antispam.utils.options import AntiSpamOptions, IgnoreList, build_options
from antispam.utils.ledger import ActivityLedger, ActivityRecord, MessageRecord
from antispam.utils.escalation import Decision, EscalationState, Tier
from antispam.utils.formatting import format_notice, send_notice
from antispam.utils.events import EventEmitter, MonitorEvent
from antispam.utils.dispatcher import ActionDispatcher
from antispam.utils.monitor import SpamMonitor, MonitorSnapshot

__all__ = [
    "get_logger",
    "setup_logging",
    "AntiSpamOptions",
    "IgnoreList",
    "build_options",
    "ActivityLedger",
    "ActivityRecord",
    "MessageRecord",
    "Decision",
    "EscalationState",
    "Tier",
    "format_notice",
    "send_notice",
    "EventEmitter",
    "MonitorEvent",
    "ActionDispatcher",
    "SpamMonitor",
    "MonitorSnapshot",
]
