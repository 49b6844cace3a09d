"""
Store: persisted scheduling state keyed by card fingerprint.
"""

from recall.store.schedule_store import Candidate, ScheduleRecord, ScheduleStore

__all__ = ["Candidate", "ScheduleRecord", "ScheduleStore"]
