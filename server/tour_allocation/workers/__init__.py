"""Background workers for the tour allocation service."""

from .interval_purge_worker import IntervalPurgeWorker

__all__ = ["IntervalPurgeWorker"]
