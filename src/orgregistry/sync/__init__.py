"""
orgregistry.sync — Синхронизация списков: кэш, polling, push, удаление с каскадом.
"""

from orgregistry.sync.cache import CacheEntry, QueryCache  # noqa: F401
from orgregistry.sync.engine import (  # noqa: F401
    ListSyncEngine,
    ListView,
    RemoveOutcome,
    RemoveResult,
    ViewStatus,
)
from orgregistry.sync.polling import (  # noqa: F401
    FixedInterval,
    NoPolling,
    PollPolicy,
    PollTimer,
    WhileInProgress,
    history_policy,
    live_policy,
)
