"""
Integration tests for the alerting repository.
"""
from datetime import date

import pytest

from retailops.exceptions import ValidationError
from retailops.models import Payment


class TestLowStockAlerts:
    """Tests for low_stock_alerts."""

    @pytest.mark.asyncio
    async def test_default_threshold(self, seeded_engine):
        """Records strictly below 10, lowest stock first."""
        rows = await seeded_engine.alerts.low_stock_alerts()

        assert [(r["inventory_id"], r["stock"]) for r in rows] == [
            (6, 0), (2, 2), (5, 3), (3, 4), (1, 5),
        ]
        assert rows[0]["product_name"] == "Shovel"
        assert rows[2]["warehouse_id"] == 1

    @pytest.mark.asyncio
    async def test_threshold_is_strict(self, seeded_engine):
        """Stock equal to the threshold is not an alert."""
        rows = await seeded_engine.alerts.low_stock_alerts(3)
        assert [r["stock"] for r in rows] == [0, 2]

    @pytest.mark.asyncio
    async def test_reflects_sales(self, seeded_engine):
        await seeded_engine.sales.record_sale(1, 1, [(3, 45)])

        rows = await seeded_engine.alerts.low_stock_alerts(10)
        assert 4 in [r["inventory_id"] for r in rows]

    @pytest.mark.asyncio
    async def test_invalid_threshold(self, seeded_engine):
        with pytest.raises(ValidationError):
            await seeded_engine.alerts.low_stock_alerts(-5)


class TestShippingDelayAlerts:
    """Tests for shipping_delay_alerts."""

    @pytest.mark.asyncio
    async def test_default_threshold(self, seeded_engine):
        """Shipped more than 5 days after ordering, longest delay first."""
        rows = await seeded_engine.alerts.shipping_delay_alerts()

        assert [(r["order_id"], r["delay_days"]) for r in rows] == [(2, 10), (4, 8)]
        assert rows[0]["shipping_provider"] == "UPS"
        assert rows[0]["order_date"] == date(2024, 2, 15)

    @pytest.mark.asyncio
    async def test_threshold_is_strict(self, seeded_engine):
        """A delay equal to the threshold is not an alert."""
        rows = await seeded_engine.alerts.shipping_delay_alerts(8)
        assert [r["order_id"] for r in rows] == [2]

    @pytest.mark.asyncio
    async def test_zero_threshold(self, seeded_engine):
        rows = await seeded_engine.alerts.shipping_delay_alerts(0)
        assert len(rows) == 5

    @pytest.mark.asyncio
    async def test_empty_store(self, engine):
        assert await engine.alerts.shipping_delay_alerts() == []


class TestPaymentAlerts:
    """Tests for payment_success_rate and payment_failure_alert."""

    @pytest.mark.asyncio
    async def test_success_rate(self, seeded_engine):
        """3 of 5 payments succeeded."""
        result = await seeded_engine.alerts.payment_success_rate()
        assert result == {
            "total_payments": 5,
            "successful_payments": 3,
            "success_rate": 60.0,
        }

    @pytest.mark.asyncio
    async def test_success_rate_without_payments(self, engine):
        """No payments gives a 0.0 rate, not an error."""
        result = await engine.alerts.payment_success_rate()
        assert result["success_rate"] == 0.0
        assert result["total_payments"] == 0

    @pytest.mark.asyncio
    async def test_failure_alert_at_threshold(self, seeded_engine):
        """1 of 5 failed is exactly 20% and does not trigger."""
        result = await seeded_engine.alerts.payment_failure_alert()

        assert result["failure_rate"] == 20.0
        assert result["failed_payments"] == 1
        assert result["triggered"] is False

    @pytest.mark.asyncio
    async def test_failure_alert_triggered(self, seeded_engine):
        result = await seeded_engine.alerts.payment_failure_alert(10.0)
        assert result["triggered"] is True
        assert result["threshold"] == 10.0

    @pytest.mark.asyncio
    async def test_failure_alert_tracks_new_failures(self, seeded_engine):
        await seeded_engine.catalog.upsert_payments([
            Payment(id=6, order_id=6, payment_date=date(2024, 3, 6), status="Failed"),
        ])

        result = await seeded_engine.alerts.payment_failure_alert()
        assert result["failure_rate"] == pytest.approx(33.33)
        assert result["triggered"] is True

    @pytest.mark.asyncio
    async def test_failure_alert_without_payments(self, engine):
        result = await engine.alerts.payment_failure_alert(0)
        assert result["triggered"] is False

    @pytest.mark.asyncio
    async def test_failure_rate_bounds(self, seeded_engine):
        with pytest.raises(ValidationError):
            await seeded_engine.alerts.payment_failure_alert(120)
