"""
Usage tracker: cost accounting over UsageRecords.

Records are append-only; every figure here is an aggregation over the
successful records of a time window. Failed calls never produce a record.
"""

import csv
import io
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from inference_gateway.models.enums import ReportGroupBy
from inference_gateway.models.telemetry import (
    CostReport,
    CostReportItem,
    CostThreshold,
    ThresholdStatus,
    UsageRecord,
)
from inference_gateway.persistence.repository import UsageStore

logger = structlog.get_logger(__name__)

CSV_COLUMNS = ["key", "cost", "call_count", "input_tokens", "output_tokens", "average_latency_ms"]


def _group_key(record: UsageRecord, group_by: ReportGroupBy) -> str:
    if group_by is ReportGroupBy.MODEL:
        return record.model_key
    if group_by is ReportGroupBy.BACKEND:
        return record.backend
    if group_by is ReportGroupBy.SCENARIO:
        return record.scenario
    if group_by is ReportGroupBy.USER:
        return record.user_id or "anonymous"
    if group_by is ReportGroupBy.AGENT_TYPE:
        return record.agent_type or "unspecified"
    return record.workflow_step or "unspecified"


class UsageTracker:
    def __init__(
        self,
        store: UsageStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self._clock = clock
        self._thresholds: dict[str, CostThreshold] = {}

    async def record_usage(self, record: UsageRecord) -> bool:
        saved = await self.store.add(record)
        logger.debug(
            "Usage recorded",
            model=record.model_key,
            scenario=record.scenario,
            user_id=record.user_id,
            cost=record.cost,
            total_tokens=record.total_tokens,
            saved=saved,
        )
        return saved

    async def _successful(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
        user_id: Optional[str] = None,
        model_key: Optional[str] = None,
    ) -> list[UsageRecord]:
        return await self.store.query(
            start=start, end=end, user_id=user_id, model_key=model_key, success=True
        )

    async def cost_by(
        self,
        group_by: ReportGroupBy,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict[str, float]:
        """Total cost per group key."""
        totals: dict[str, float] = defaultdict(float)
        for record in await self._successful(start, end):
            totals[_group_key(record, group_by)] += record.cost
        return dict(totals)

    async def total_cost(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> float:
        return sum(r.cost for r in await self._successful(start, end, user_id=user_id))

    async def generate_cost_report(
        self,
        start: datetime,
        end: datetime,
        group_by: ReportGroupBy = ReportGroupBy.MODEL,
    ) -> CostReport:
        """
        Aggregate cost, calls, tokens and mean latency per group.

        Items are sorted by cost, most expensive first.
        """
        buckets: dict[str, list[UsageRecord]] = defaultdict(list)
        for record in await self._successful(start, end):
            buckets[_group_key(record, group_by)].append(record)

        items = [
            CostReportItem(
                key=key,
                cost=sum(r.cost for r in records),
                call_count=len(records),
                input_tokens=sum(r.input_tokens for r in records),
                output_tokens=sum(r.output_tokens for r in records),
                average_latency_ms=round(sum(r.latency_ms for r in records) / len(records), 2),
            )
            for key, records in buckets.items()
        ]
        items.sort(key=lambda item: item.cost, reverse=True)

        report = CostReport(
            start=start,
            end=end,
            group_by=group_by,
            total_cost=sum(i.cost for i in items),
            total_calls=sum(i.call_count for i in items),
            items=items,
        )
        logger.info(
            "Cost report generated",
            group_by=group_by.value,
            groups=len(items),
            total_cost=report.total_cost,
        )
        return report

    @staticmethod
    def export_report_csv(report: CostReport) -> str:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for item in report.items:
            writer.writerow(item.model_dump(include=set(CSV_COLUMNS)))
        return buffer.getvalue()

    @staticmethod
    def export_report_json(report: CostReport) -> str:
        return report.model_dump_json(indent=2)

    # === Thresholds ===

    def set_cost_threshold(self, user_id: str, threshold: CostThreshold) -> None:
        self._thresholds[user_id] = threshold
        logger.info(
            "Cost threshold set",
            user_id=user_id,
            daily_limit=threshold.daily_limit,
            monthly_limit=threshold.monthly_limit,
        )

    def get_cost_threshold(self, user_id: str) -> Optional[CostThreshold]:
        return self._thresholds.get(user_id)

    async def check_cost_threshold(self, user_id: str) -> ThresholdStatus:
        """
        Compare today's and this month's spend (UTC) with the user's limits.

        Users without a threshold are never over.
        """
        threshold = self._thresholds.get(user_id)
        if threshold is None:
            return ThresholdStatus(user_id=user_id, exceeded=False)

        now = self._clock()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        month_start = day_start.replace(day=1)
        monthly_records = await self._successful(month_start, now, user_id=user_id)
        monthly_cost = sum(r.cost for r in monthly_records)
        daily_cost = sum(r.cost for r in monthly_records if r.timestamp >= day_start)

        exceeded = (
            threshold.daily_limit is not None and daily_cost > threshold.daily_limit
        ) or (
            threshold.monthly_limit is not None and monthly_cost > threshold.monthly_limit
        )
        if exceeded:
            logger.warning(
                "Cost threshold exceeded",
                user_id=user_id,
                daily_cost=daily_cost,
                monthly_cost=monthly_cost,
                daily_limit=threshold.daily_limit,
                monthly_limit=threshold.monthly_limit,
            )
        return ThresholdStatus(
            user_id=user_id,
            exceeded=exceeded,
            daily_cost=daily_cost,
            monthly_cost=monthly_cost,
            daily_limit=threshold.daily_limit,
            monthly_limit=threshold.monthly_limit,
        )

    # === Stats ===

    @staticmethod
    def _summarize(records: list[UsageRecord]) -> dict:
        successful = [r for r in records if r.success]
        return {
            "total_calls": len(records),
            "successful_calls": len(successful),
            "failed_calls": len(records) - len(successful),
            "total_cost": sum(r.cost for r in successful),
            "total_tokens": sum(r.total_tokens for r in successful),
            "average_latency_ms": (
                round(sum(r.latency_ms for r in records) / len(records), 2) if records else 0.0
            ),
        }

    async def model_usage_stats(
        self,
        model_key: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict:
        records = await self.store.query(start=start, end=end, model_key=model_key)
        return {"model": model_key, **self._summarize(records)}

    async def user_usage_stats(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        days: int = 30,
    ) -> dict:
        """Defaults to the last ``days`` days when no window is given."""
        end = end or self._clock()
        start = start or end - timedelta(days=days)
        records = await self.store.query(start=start, end=end, user_id=user_id)
        return {"user_id": user_id, **self._summarize(records)}
