"""
Alerting repository: threshold checks over stock, shipping and payments.

Same read discipline as analytics: one snapshot per call, no failure on
empty data.
"""
from typing import Any, Dict, List, Optional

from retailops.config import config
from retailops.events import EventBus, SaleEvent
from retailops.models import PaymentStatus, is_undefined
from retailops.observability import get_logger, timed
from retailops.repositories.base import BaseRepository, safe_ratio
from retailops.validators import validate_threshold

logger = get_logger(__name__)

SLOW_MS = config.analytics.slow_query_ms


class AlertingRepository(BaseRepository):
    """Repository for stock, shipping-delay and payment alerts."""

    def __init__(self, store, event_bus: Optional[EventBus] = None):
        super().__init__(store)
        self.event_bus = event_bus

    @timed(warn_threshold_ms=SLOW_MS)
    async def low_stock_alerts(
        self, threshold: int = config.alerts.low_stock_threshold
    ) -> List[Dict[str, Any]]:
        """Inventory records with stock below threshold, lowest stock first."""
        threshold = validate_threshold(threshold)
        rows = await self.store.fetch_dicts("""
            SELECT
                i.id AS inventory_id,
                i.product_id,
                p.name AS product_name,
                i.warehouse_id,
                i.stock,
                i.last_restock_date
            FROM inventory i
            LEFT JOIN products p ON p.id = i.product_id
            WHERE i.stock < ?
            ORDER BY i.stock ASC, i.id ASC
        """, [threshold])

        if rows:
            logger.warning(f"{len(rows)} inventory records below stock threshold {threshold}")
            if self.event_bus:
                await self.event_bus.emit(SaleEvent.LOW_STOCK_DETECTED, {
                    "threshold": threshold,
                    "count": len(rows),
                    "inventory_ids": [r["inventory_id"] for r in rows],
                })
        return rows

    @timed(warn_threshold_ms=SLOW_MS)
    async def shipping_delay_alerts(
        self, threshold_days: int = config.alerts.shipping_delay_days
    ) -> List[Dict[str, Any]]:
        """Orders shipped more than threshold_days after ordering, longest delay first."""
        threshold_days = validate_threshold(threshold_days, "threshold_days")
        rows = await self.store.fetch_dicts("""
            SELECT
                o.id AS order_id,
                o.customer_id,
                o.order_date,
                s.shipping_date,
                s.shipping_provider,
                DATE_DIFF('day', o.order_date, s.shipping_date) AS delay_days
            FROM orders o
            JOIN shippings s ON s.order_id = o.id
            WHERE s.shipping_date IS NOT NULL
              AND DATE_DIFF('day', o.order_date, s.shipping_date) > ?
            ORDER BY delay_days DESC, o.id ASC, s.id ASC
        """, [threshold_days])
        for row in rows:
            row["delay_days"] = int(row["delay_days"])
        return rows

    async def _payment_counts(self) -> Dict[str, int]:
        row = await self.store.fetch_one("""
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE status = ?) AS successful,
                COUNT(*) FILTER (WHERE status = ?) AS failed
            FROM payments
        """, [PaymentStatus.SUCCESS.value, PaymentStatus.FAILED.value])
        return {"total": int(row[0]), "successful": int(row[1]), "failed": int(row[2])}

    @timed(warn_threshold_ms=SLOW_MS)
    async def payment_success_rate(self) -> Dict[str, Any]:
        """
        Percentage of payments with status Success.

        Returns:
            {"total_payments", "successful_payments", "success_rate"};
            success_rate is 0.0 when there are no payments
        """
        counts = await self._payment_counts()
        rate = safe_ratio(counts["successful"], counts["total"], scale=100)
        return {
            "total_payments": counts["total"],
            "successful_payments": counts["successful"],
            "success_rate": 0.0 if is_undefined(rate) else rate,
        }

    @timed(warn_threshold_ms=SLOW_MS)
    async def payment_failure_alert(
        self, max_failure_rate: float = config.alerts.max_payment_failure_rate
    ) -> Dict[str, Any]:
        """
        Check the share of failed payments against a percentage threshold.

        Never triggers when there are no payments.
        """
        max_failure_rate = validate_threshold(max_failure_rate, "max_failure_rate", max_value=100)
        counts = await self._payment_counts()
        rate = safe_ratio(counts["failed"], counts["total"], scale=100)
        failure_rate = 0.0 if is_undefined(rate) else rate
        triggered = counts["total"] > 0 and failure_rate > max_failure_rate

        if triggered:
            logger.warning(
                f"Payment failure rate {failure_rate}% exceeds {max_failure_rate}%",
                extra={"failed_payments": counts["failed"], "total_payments": counts["total"]},
            )

        return {
            "total_payments": counts["total"],
            "failed_payments": counts["failed"],
            "failure_rate": failure_rate,
            "threshold": max_failure_rate,
            "triggered": triggered,
        }
