"""Utility modules for swapcore."""

from swapcore.utils.clock import Clock, system_clock
from swapcore.utils.locks import RecordLock, get_record_lock, record_lock

__all__ = ["Clock", "RecordLock", "get_record_lock", "record_lock", "system_clock"]
