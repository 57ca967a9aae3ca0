"""Read-only page view statistics over the persisted events table."""

import logging
from datetime import date
from typing import Any, Dict, Optional
from asyncpg import Pool


logger = logging.getLogger(__name__)


TOP_PATHS_LIMIT = 10

_TOTALS_SQL = """
    SELECT
        COUNT(*) AS total_views,
        COUNT(DISTINCT user_id) FILTER (WHERE user_id IS NOT NULL) AS unique_users
    FROM events
    WHERE site_id = $1
        AND event_type = 'page_view'
        {date_filter}
"""

_TOP_PATHS_SQL = """
    SELECT
        path,
        COUNT(*) AS views
    FROM events
    WHERE site_id = $1
        AND event_type = 'page_view'
        AND path IS NOT NULL
        {date_filter}
    GROUP BY path
    ORDER BY views DESC
    LIMIT {limit}
"""

_DATE_FILTER = "AND DATE(timestamp AT TIME ZONE 'UTC') = $2"


class StatsReader:
    """Aggregates page views for one site, optionally restricted to a UTC day."""

    def __init__(self, pool: Pool):
        self.pool = pool

    async def get_site_stats(self, site_id: str, day: Optional[date] = None) -> Dict[str, Any]:
        date_filter = _DATE_FILTER if day else ""
        params = [site_id, day] if day else [site_id]

        totals = await self.pool.fetchrow(_TOTALS_SQL.format(date_filter=date_filter), *params)
        top_paths = await self.pool.fetch(
            _TOP_PATHS_SQL.format(date_filter=date_filter, limit=TOP_PATHS_LIMIT),
            *params
        )

        return {
            "site_id": site_id,
            "date": day.isoformat() if day else "all-time",
            "total_views": int(totals["total_views"] or 0) if totals else 0,
            "unique_users": int(totals["unique_users"] or 0) if totals else 0,
            "top_paths": [
                {"path": row["path"], "views": int(row["views"])}
                for row in top_paths
            ]
        }
