"""
Persistence layer.

One SQLite database shared by every process holds users, signals, settings,
rounds and cluster locks.
"""

from .cluster_lock import ClusterLock
from .database import Database
from .round_store import RoundStore
from .setting_store import SettingStore
from .signal_store import SignalStore
from .user_ledger import UserLedger

__all__ = [
    "ClusterLock",
    "Database",
    "RoundStore",
    "SettingStore",
    "SignalStore",
    "UserLedger",
]
