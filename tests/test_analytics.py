import pandas as pd
import pytest

from analytics import (
    dashboard_stats, sales_report, report_csv, invoice_text, sales_csv, stock_status, stock_summary
)

NOW = pd.Timestamp("2026-10-19 12:00", tz="UTC")

PRODUCTS = [
    {"id": "a", "name": "Mouse", "quantity": 5, "reorder_level": 10, "category": "Electronics"},
    {"id": "b", "name": "Cable", "quantity": 20, "reorder_level": 10, "category": "Accessories"},
    {"id": "c", "name": "Keyboard", "quantity": 8, "reorder_level": 8, "category": "Electronics"},
]


def make_sale(sid, product_id, name, quantity, total, method, created_at, discount_amount=0.0):
    return {
        "id": sid,
        "invoice_number": f"INV-{sid}",
        "product_id": product_id,
        "product_name": name,
        "quantity": quantity,
        "price": total / quantity,
        "subtotal": total + discount_amount,
        "discount": 0,
        "discount_amount": discount_amount,
        "total": total,
        "payment_method": method,
        "customer_name": "Walk-in Customer",
        "created_at": created_at,
    }


SALES = [
    make_sale("1", "a", "Mouse", 2, 100.0, "cash", "2026-10-18T10:00:00+00:00"),
    make_sale("2", "a", "Mouse", 1, 50.0, "upi", "2026-10-15T10:00:00+00:00", discount_amount=5.0),
    make_sale("3", "b", "Cable", 3, 75.0, "card", "2026-10-10T10:00:00+00:00"),
    make_sale("4", "b", "Cable", 1, 25.0, "card", "2026-09-01T10:00:00+00:00"),
]


class TestDashboard:
    def test_totals(self):
        stats = dashboard_stats(PRODUCTS, SALES, now=NOW, tz="UTC")
        assert stats["total_revenue"] == pytest.approx(250.0)
        assert stats["total_sales"] == 4
        assert stats["total_products"] == 3
        # strictly below the reorder level
        assert stats["low_stock_items"] == 1

    def test_week_over_week_change(self):
        stats = dashboard_stats(PRODUCTS, SALES, now=NOW, tz="UTC")
        assert stats["revenue_change"] == pytest.approx(100.0)
        assert stats["sales_change"] == pytest.approx(100.0)

    def test_chart_covers_fourteen_days(self):
        chart = dashboard_stats(PRODUCTS, SALES, now=NOW, tz="UTC")["chart"]
        assert len(chart) == 14
        assert chart[-1]["date"] == "2026-10-19"
        by_date = {p["date"]: p for p in chart}
        assert by_date["2026-10-18"] == {"date": "2026-10-18", "revenue": 100.0, "sales": 1}
        assert by_date["2026-10-17"]["sales"] == 0

    def test_top_products_and_categories(self):
        stats = dashboard_stats(PRODUCTS, SALES, now=NOW, tz="UTC")
        assert [p["id"] for p in stats["top_products"]] == ["a", "b"]
        assert stats["top_products"][0]["quantity"] == 3
        assert stats["categories"] == [
            {"name": "Electronics", "value": 2},
            {"name": "Accessories", "value": 1},
        ]

    def test_no_sales(self):
        stats = dashboard_stats(PRODUCTS, [], now=NOW, tz="UTC")
        assert stats["total_revenue"] == 0
        assert stats["revenue_change"] == 0
        assert stats["top_products"] == []
        assert len(stats["chart"]) == 14


class TestReport:
    def test_seven_day_window(self):
        report = sales_report(PRODUCTS, SALES, "7days", now=NOW, tz="UTC")
        assert report["period"] == "Last 7 Days"
        assert report["total_revenue"] == pytest.approx(150.0)
        assert report["total_sales"] == 2
        assert report["average_order_value"] == pytest.approx(75.0)
        assert report["total_discount"] == pytest.approx(5.0)
        assert len(report["daily_trend"]) == 7

    def test_payment_methods_always_listed(self):
        report = sales_report(PRODUCTS, SALES, "7days", now=NOW, tz="UTC")
        assert report["payment_data"] == [
            {"method": "CASH", "amount": 100.0},
            {"method": "CARD", "amount": 0.0},
            {"method": "UPI", "amount": 50.0},
        ]

    def test_category_performance(self):
        report = sales_report(PRODUCTS, SALES, "30days", now=NOW, tz="UTC")
        perf = {c["category"]: c for c in report["category_performance"]}
        assert perf["Electronics"]["revenue"] == pytest.approx(150.0)
        assert perf["Accessories"]["quantity"] == 3

    def test_sales_of_deleted_products_skip_categories(self):
        report = sales_report(PRODUCTS[1:], SALES, "90days", now=NOW, tz="UTC")
        assert {c["category"] for c in report["category_performance"]} == {"Accessories"}
        assert report["total_sales"] == 4

    def test_unknown_range(self):
        with pytest.raises(ValueError):
            sales_report(PRODUCTS, SALES, "1year", now=NOW)

    def test_csv(self):
        text = report_csv(sales_report(PRODUCTS, SALES, "7days", now=NOW, tz="UTC"))
        lines = text.splitlines()
        assert lines[0] == "Sales Report"
        assert "Period: Last 7 Days" in lines
        assert "Total Revenue,$150.00" in lines
        assert "Total Sales,2" in lines
        assert "Product Name,Quantity Sold,Revenue" in lines
        assert "Mouse,3,$150.00" in lines


class TestInvoice:
    def test_discount_line_only_with_discount(self):
        sale = make_sale("9", "a", "Mouse", 2, 50.0, "upi", "2026-10-18T10:00:00+00:00")
        text = invoice_text(sale, tz="UTC")
        assert "Invoice #: INV-9" in text
        assert "Quantity: 2 x $25.00" in text
        assert "TOTAL: $50.00" in text
        assert "Payment Method: UPI" in text
        assert "Discount" not in text

        sale.update(discount=10, discount_amount=5.0, subtotal=50.0, total=45.0)
        text = invoice_text(sale, tz="UTC")
        assert "Discount (10%): -$5.00" in text
        assert "TOTAL: $45.00" in text


def test_sales_csv_rows():
    text = sales_csv(SALES[:2], tz="UTC")
    lines = text.splitlines()
    assert lines[0].startswith("Date,Invoice,Customer,Payment,Product")
    assert len(lines) == 3
    assert ",INV-1,Walk-in Customer,cash,Mouse,2," in lines[1]


def test_stock_status_and_summary():
    assert [stock_status(p) for p in PRODUCTS] == ["Low Stock", "In Stock", "In Stock"]
    assert stock_status({"quantity": 0, "reorder_level": 10}) == "Out of Stock"

    products = PRODUCTS + [{"id": "d", "name": "Hub", "quantity": 0, "reorder_level": 4}]
    assert stock_summary(products) == {
        "total_products": 4, "in_stock": 2, "low_stock": 1, "out_of_stock": 1,
    }
