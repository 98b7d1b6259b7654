from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Tuple

from ekokurikulum.core import data_loader
from ekokurikulum.core.models import DashboardStats, Student

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    user_id: str
    records: Tuple[Student, ...]
    stats: DashboardStats


class RecordStore:
    """
    Session-scoped holder of the student list and the latest statistics.

    load() replaces both in a single assignment, so readers never see records
    from one load paired with stats from another. Only one load per store is
    expected to be in flight at a time.
    """

    def __init__(self) -> None:
        self._snapshot: Optional[_Snapshot] = None

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def loaded_for(self) -> Optional[str]:
        return self._snapshot.user_id if self._snapshot is not None else None

    def load(self, user_id: str) -> Tuple[Tuple[Student, ...], DashboardStats]:
        """
        Fetch students and statistics for user_id concurrently and swap them in.

        Both data_loader calls absorb their own failures into offline data, so
        the join always yields a usable pair.
        """
        t0 = time.perf_counter()
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="ekoku-load") as pool:
            records_future = pool.submit(data_loader.get_records, user_id)
            stats_future = pool.submit(data_loader.get_statistics, user_id)
            records = tuple(records_future.result())
            stats = stats_future.result()

        self._snapshot = _Snapshot(user_id=user_id, records=records, stats=stats)
        logger.info(
            "Loaded %d students and statistics for %s in %0.2fs",
            len(records), user_id, time.perf_counter() - t0,
        )
        return records, stats

    def current(self) -> Tuple[Student, ...]:
        if self._snapshot is None:
            return ()
        return self._snapshot.records

    def statistics(self) -> Optional[DashboardStats]:
        if self._snapshot is None:
            return None
        return self._snapshot.stats
