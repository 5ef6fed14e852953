"""
Analytics repository for sales, revenue and customer insights.

Every query is a pure read over one snapshot (one read transaction) and
returns rows as dicts with stable field names. Row order is fully
determined: every ranking carries an explicit id tie-break.
"""
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from retailops.config import config
from retailops.models import CustomerSegment, Period, is_undefined
from retailops.observability import get_logger, timed
from retailops.repositories.base import LINE_REVENUE, BaseRepository, safe_ratio, to_money
from retailops.validators import validate_date, validate_disjoint_periods, validate_limit

logger = get_logger(__name__)

SLOW_MS = config.analytics.slow_query_ms

PeriodLike = Union[Period, Tuple[date, date]]


def _limit(n: int) -> int:
    return validate_limit(n, "n", max_value=config.analytics.max_limit)


class AnalyticsRepository(BaseRepository):
    """Repository for analytics queries - products, categories, customers, sellers."""

    # ─── Products ────────────────────────────────────────────────────────────

    @timed(warn_threshold_ms=SLOW_MS)
    async def top_selling_products(self, n: int = config.analytics.default_top_n) -> List[Dict[str, Any]]:
        """Products ranked by units sold; ties by ascending product id."""
        n = _limit(n)
        rows = await self.store.fetch_dicts(f"""
            SELECT
                p.id AS product_id,
                p.name AS product_name,
                SUM(oi.quantity) AS total_quantity_sold
            FROM order_items oi
            JOIN products p ON p.id = oi.product_id
            GROUP BY p.id, p.name
            ORDER BY total_quantity_sold DESC, p.id ASC
            LIMIT {n}
        """)
        for row in rows:
            row["total_quantity_sold"] = int(row["total_quantity_sold"])
        return rows

    @timed(warn_threshold_ms=SLOW_MS)
    async def product_profit_margin(self) -> List[Dict[str, Any]]:
        """
        Profit margin percent per product: (price - cogs) / price * 100.

        A product priced at zero gets UNDEFINED instead of a number. Rows are
        ordered by margin descending, undefined margins last, then product id.
        """
        rows = await self.store.fetch_dicts("""
            SELECT id AS product_id, name AS product_name, price, cogs
            FROM products
            ORDER BY id
        """)
        for row in rows:
            row["profit_margin"] = safe_ratio(row["price"] - row["cogs"], row["price"], scale=100)
            row["price"] = to_money(row["price"])
            row["cogs"] = to_money(row["cogs"])

        rows.sort(key=lambda r: (
            is_undefined(r["profit_margin"]),
            0 if is_undefined(r["profit_margin"]) else -r["profit_margin"],
            r["product_id"],
        ))
        return rows

    @timed(warn_threshold_ms=SLOW_MS)
    async def most_returned_products(self, n: int = config.analytics.default_top_n) -> List[Dict[str, Any]]:
        """Products ranked by returned shipments; ties by ascending product id."""
        n = _limit(n)
        rows = await self.store.fetch_dicts(f"""
            SELECT
                p.id AS product_id,
                p.name AS product_name,
                COUNT(DISTINCT s.id) AS total_returns
            FROM shippings s
            JOIN order_items oi ON oi.order_id = s.order_id
            JOIN products p ON p.id = oi.product_id
            WHERE s.return_date IS NOT NULL
            GROUP BY p.id, p.name
            ORDER BY total_returns DESC, p.id ASC
            LIMIT {n}
        """)
        for row in rows:
            row["total_returns"] = int(row["total_returns"])
        return rows

    @timed(warn_threshold_ms=SLOW_MS)
    async def top_decreasing_revenue_products(
        self,
        n: int,
        period_a: PeriodLike,
        period_b: PeriodLike,
    ) -> List[Dict[str, Any]]:
        """
        Products ranked by period-over-period revenue change.

        ratio = (period_a_revenue - period_b_revenue) / period_b_revenue

        Both periods are inclusive (start, end) date pairs and must not
        overlap. Products without revenue in period B have no defined ratio
        and are left out.
        """
        n = _limit(n)
        a, b = validate_disjoint_periods(period_a, period_b)

        rows = await self.store.fetch_dicts(f"""
            WITH period_revenue AS (
                SELECT
                    p.id AS product_id,
                    p.name AS product_name,
                    COALESCE(SUM(CASE WHEN o.order_date BETWEEN ? AND ?
                                      THEN {LINE_REVENUE} END), 0) AS period_a_revenue,
                    COALESCE(SUM(CASE WHEN o.order_date BETWEEN ? AND ?
                                      THEN {LINE_REVENUE} END), 0) AS period_b_revenue
                FROM order_items oi
                JOIN orders o ON o.id = oi.order_id
                JOIN products p ON p.id = oi.product_id
                GROUP BY p.id, p.name
            )
            SELECT
                product_id,
                product_name,
                period_a_revenue,
                period_b_revenue,
                CAST(period_a_revenue - period_b_revenue AS DOUBLE)
                    / CAST(period_b_revenue AS DOUBLE) AS revenue_change_ratio
            FROM period_revenue
            WHERE period_b_revenue <> 0
            ORDER BY revenue_change_ratio DESC, product_id ASC
            LIMIT {n}
        """, [a.start, a.end, b.start, b.end])

        for row in rows:
            row["period_a_revenue"] = to_money(row["period_a_revenue"])
            row["period_b_revenue"] = to_money(row["period_b_revenue"])
            row["revenue_change_ratio"] = round(row["revenue_change_ratio"], 4)
        return rows

    # ─── Revenue ─────────────────────────────────────────────────────────────

    @timed(warn_threshold_ms=SLOW_MS)
    async def revenue_by_category(self) -> List[Dict[str, Any]]:
        """Revenue per category, including categories that sold nothing."""
        rows = await self.store.fetch_dicts(f"""
            SELECT
                c.id AS category_id,
                c.name AS category_name,
                COALESCE(SUM({LINE_REVENUE}), 0) AS total_revenue
            FROM categories c
            LEFT JOIN products p ON p.category_id = c.id
            LEFT JOIN order_items oi ON oi.product_id = p.id
            GROUP BY c.id, c.name
            ORDER BY total_revenue DESC, c.id ASC
        """)
        for row in rows:
            row["total_revenue"] = to_money(row["total_revenue"])
        return rows

    @timed(warn_threshold_ms=SLOW_MS)
    async def average_order_value(self) -> Dict[str, Any]:
        """
        Mean of per-order revenue.

        Returns:
            {"order_count", "average_order_value"}; the average is UNDEFINED
            when there are no orders
        """
        row = await self.store.fetch_one(f"""
            WITH order_totals AS (
                SELECT oi.order_id, SUM({LINE_REVENUE}) AS order_total
                FROM order_items oi
                JOIN orders o ON o.id = oi.order_id
                GROUP BY oi.order_id
            )
            SELECT COUNT(*), SUM(order_total) FROM order_totals
        """)
        order_count = int(row[0] or 0)
        return {
            "order_count": order_count,
            "average_order_value": safe_ratio(row[1], order_count),
        }

    @timed(warn_threshold_ms=SLOW_MS)
    async def monthly_sales_trend(self) -> List[Dict[str, Any]]:
        """Revenue per calendar month of order date, oldest month first."""
        rows = await self.store.fetch_dicts(f"""
            SELECT
                DATE_TRUNC('month', o.order_date) AS month_start,
                SUM({LINE_REVENUE}) AS total_revenue,
                COUNT(DISTINCT o.id) AS order_count
            FROM orders o
            JOIN order_items oi ON oi.order_id = o.id
            GROUP BY month_start
            ORDER BY month_start ASC
        """)
        return [
            {
                "month": row["month_start"].strftime("%Y-%m"),
                "total_revenue": to_money(row["total_revenue"]),
                "order_count": int(row["order_count"]),
            }
            for row in rows
        ]

    @timed(warn_threshold_ms=SLOW_MS)
    async def least_selling_categories_by_state(self) -> List[Dict[str, Any]]:
        """Revenue per (state, category), lowest revenue first within each state."""
        rows = await self.store.fetch_dicts(f"""
            SELECT
                cu.state AS state,
                c.id AS category_id,
                c.name AS category_name,
                SUM({LINE_REVENUE}) AS total_revenue
            FROM orders o
            JOIN customers cu ON cu.id = o.customer_id
            JOIN order_items oi ON oi.order_id = o.id
            JOIN products p ON p.id = oi.product_id
            JOIN categories c ON c.id = p.category_id
            GROUP BY cu.state, c.id, c.name
            ORDER BY cu.state ASC, total_revenue ASC, c.id ASC
        """)
        for row in rows:
            row["total_revenue"] = to_money(row["total_revenue"])
        return rows

    @timed(warn_threshold_ms=SLOW_MS)
    async def revenue_by_shipping_provider(self) -> List[Dict[str, Any]]:
        """Revenue of shipped orders per shipping provider."""
        rows = await self.store.fetch_dicts(f"""
            WITH order_providers AS (
                SELECT DISTINCT order_id, shipping_provider FROM shippings
            ),
            order_totals AS (
                SELECT oi.order_id, SUM({LINE_REVENUE}) AS order_total
                FROM order_items oi
                GROUP BY oi.order_id
            )
            SELECT
                op.shipping_provider AS shipping_provider,
                COALESCE(SUM(ot.order_total), 0) AS total_revenue,
                COUNT(DISTINCT op.order_id) AS order_count
            FROM order_providers op
            JOIN orders o ON o.id = op.order_id
            LEFT JOIN order_totals ot ON ot.order_id = op.order_id
            GROUP BY op.shipping_provider
            ORDER BY total_revenue DESC, shipping_provider ASC
        """)
        for row in rows:
            row["total_revenue"] = to_money(row["total_revenue"])
            row["order_count"] = int(row["order_count"])
        return rows

    # ─── Customers ───────────────────────────────────────────────────────────

    @timed(warn_threshold_ms=SLOW_MS)
    async def customers_with_no_purchases(self) -> List[Dict[str, Any]]:
        """Customers without any order."""
        return await self.store.fetch_dicts("""
            SELECT cu.id AS customer_id, cu.name AS customer_name, cu.state AS state
            FROM customers cu
            WHERE NOT EXISTS (SELECT 1 FROM orders o WHERE o.customer_id = cu.id)
            ORDER BY cu.id
        """)

    @timed(warn_threshold_ms=SLOW_MS)
    async def customer_lifetime_value(self) -> List[Dict[str, Any]]:
        """Total revenue per customer across all orders, highest first."""
        rows = await self.store.fetch_dicts(f"""
            SELECT
                cu.id AS customer_id,
                cu.name AS customer_name,
                COUNT(DISTINCT o.id) AS total_orders,
                SUM({LINE_REVENUE}) AS lifetime_value
            FROM customers cu
            JOIN orders o ON o.customer_id = cu.id
            JOIN order_items oi ON oi.order_id = o.id
            GROUP BY cu.id, cu.name
            ORDER BY lifetime_value DESC, cu.id ASC
        """)
        for row in rows:
            row["total_orders"] = int(row["total_orders"])
            row["lifetime_value"] = to_money(row["lifetime_value"])
        return rows

    @timed(warn_threshold_ms=SLOW_MS)
    async def customer_segmentation(self) -> List[Dict[str, Any]]:
        """
        Classify customers by distinct order dates.

        One distinct date is New, two or more is Returning. Customers
        without orders are not part of this view.
        """
        rows = await self.store.fetch_dicts("""
            SELECT
                cu.id AS customer_id,
                cu.name AS customer_name,
                COUNT(DISTINCT o.order_date) AS distinct_order_dates
            FROM customers cu
            JOIN orders o ON o.customer_id = cu.id
            GROUP BY cu.id, cu.name
            ORDER BY cu.id
        """)
        for row in rows:
            row["distinct_order_dates"] = int(row["distinct_order_dates"])
            row["segment"] = (
                CustomerSegment.NEW.value
                if row["distinct_order_dates"] == 1
                else CustomerSegment.RETURNING.value
            )
        return rows

    @timed(warn_threshold_ms=SLOW_MS)
    async def top_n_customers_per_state(self, n: int = 5) -> List[Dict[str, Any]]:
        """
        Customers ranked by order count within their state.

        Uses RANK(): tied customers share a rank and the next rank skips
        the tied positions (1, 1, 3). Rows with rank <= n are kept.
        """
        n = _limit(n)
        rows = await self.store.fetch_dicts("""
            WITH order_counts AS (
                SELECT
                    cu.state,
                    cu.id AS customer_id,
                    cu.name AS customer_name,
                    COUNT(o.id) AS total_orders
                FROM customers cu
                JOIN orders o ON o.customer_id = cu.id
                GROUP BY cu.state, cu.id, cu.name
            ),
            ranked AS (
                SELECT
                    *,
                    RANK() OVER (PARTITION BY state ORDER BY total_orders DESC) AS state_rank
                FROM order_counts
            )
            SELECT state, customer_id, customer_name, total_orders, state_rank
            FROM ranked
            WHERE state_rank <= ?
            ORDER BY state ASC, state_rank ASC, customer_id ASC
        """, [n])
        return [
            {
                "state": row["state"],
                "customer_id": row["customer_id"],
                "customer_name": row["customer_name"],
                "total_orders": int(row["total_orders"]),
                "rank": int(row["state_rank"]),
            }
            for row in rows
        ]

    # ─── Sellers ─────────────────────────────────────────────────────────────

    @timed(warn_threshold_ms=SLOW_MS)
    async def top_sellers_by_revenue(self, n: int = config.analytics.default_top_n) -> List[Dict[str, Any]]:
        """Sellers ranked by revenue; ties by ascending seller id."""
        n = _limit(n)
        rows = await self.store.fetch_dicts(f"""
            SELECT
                s.id AS seller_id,
                s.name AS seller_name,
                SUM({LINE_REVENUE}) AS total_revenue
            FROM sellers s
            JOIN orders o ON o.seller_id = s.id
            JOIN order_items oi ON oi.order_id = o.id
            GROUP BY s.id, s.name
            ORDER BY total_revenue DESC, s.id ASC
            LIMIT {n}
        """)
        for row in rows:
            row["total_revenue"] = to_money(row["total_revenue"])
        return rows

    @timed(warn_threshold_ms=SLOW_MS)
    async def inactive_sellers(self, cutoff_date: Union[date, str]) -> List[Dict[str, Any]]:
        """Sellers with no order dated after cutoff_date (never-selling sellers included)."""
        cutoff = validate_date(cutoff_date, "cutoff_date")
        return await self.store.fetch_dicts("""
            SELECT
                s.id AS seller_id,
                s.name AS seller_name,
                MAX(o.order_date) AS last_order_date
            FROM sellers s
            LEFT JOIN orders o ON o.seller_id = s.id
            GROUP BY s.id, s.name
            HAVING MAX(o.order_date) IS NULL OR MAX(o.order_date) <= ?
            ORDER BY s.id
        """, [cutoff])

    # ─── Export ──────────────────────────────────────────────────────────────

    @staticmethod
    def export_frame(
        rows: Union[Sequence[Dict[str, Any]], Dict[str, Any]],
        columns: Optional[List[str]] = None,
    ) -> pd.DataFrame:
        """
        Convert query output into a DataFrame for reporting consumers.

        UNDEFINED ratios become None so they survive serialization.
        """
        if isinstance(rows, dict):
            rows = [rows]
        cleaned = [
            {k: (None if is_undefined(v) else v) for k, v in row.items()}
            for row in rows
        ]
        return pd.DataFrame(cleaned, columns=columns)
