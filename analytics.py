"""
Sales analytics
Dashboard statistics, period reports and their CSV / plaintext renderings
"""

import csv
import io
from typing import Dict, List, Optional

import pandas as pd

from config import (
    STORE_TIMEZONE, DASHBOARD_CHART_DAYS, DASHBOARD_COMPARE_DAYS,
    DASHBOARD_TOP_PRODUCTS, REPORT_RANGES, REPORT_TOP_PRODUCTS, PAYMENT_METHODS
)
from forecasting import local_timestamps


SALE_COLUMNS = [
    'id', 'invoice_number', 'product_id', 'product_name', 'quantity', 'price',
    'subtotal', 'discount', 'discount_amount', 'total', 'payment_method',
    'customer_name', 'created_at'
]


def _now(tz: str) -> pd.Timestamp:
    return pd.Timestamp.now(tz=tz)


def sales_frame(sales: List[dict], tz: str = STORE_TIMEZONE) -> pd.DataFrame:
    """
    Load sale records into a DataFrame with local timestamps and a 'day' column

    Args:
        sales: Serialized sale documents
        tz: Timezone used for calendar days

    Returns:
        pd.DataFrame: One row per sale
    """
    df = pd.DataFrame(sales, columns=SALE_COLUMNS)
    df['created_at'] = local_timestamps(df['created_at'], tz)
    df['day'] = df['created_at'].dt.date
    df['quantity'] = df['quantity'].astype('int64')
    for col in ['price', 'subtotal', 'discount', 'discount_amount', 'total']:
        df[col] = df[col].fillna(0).astype(float)
    return df


def _percent_change(current: float, previous: float) -> float:
    if previous <= 0:
        return 0.0
    return (current - previous) / previous * 100


def _daily_series(df: pd.DataFrame, now: pd.Timestamp, days: int) -> List[Dict]:
    """Revenue and sale count for each of the last `days` calendar days, oldest first"""
    grouped = df.groupby('day').agg(revenue=('total', 'sum'), sales=('total', 'size'))

    series = []
    for i in range(days - 1, -1, -1):
        day = (now - pd.Timedelta(days=i)).date()
        if day in grouped.index:
            row = grouped.loc[day]
            revenue, count = float(row['revenue']), int(row['sales'])
        else:
            revenue, count = 0.0, 0
        series.append({'date': day.isoformat(), 'revenue': revenue, 'sales': count})
    return series


def top_products(df: pd.DataFrame, limit: int) -> List[Dict]:
    """Products ranked by revenue"""
    if df.empty:
        return []

    ranked = (
        df.groupby('product_id', sort=False)
        .agg(name=('product_name', 'first'), quantity=('quantity', 'sum'), revenue=('total', 'sum'))
        .sort_values('revenue', ascending=False)
        .head(limit)
    )
    return [
        {'id': pid, 'name': row['name'], 'quantity': int(row['quantity']), 'revenue': float(row['revenue'])}
        for pid, row in ranked.iterrows()
    ]


def category_distribution(products: List[dict]) -> List[Dict]:
    counts: Dict[str, int] = {}
    for p in products:
        category = p.get('category') or 'Uncategorized'
        counts[category] = counts.get(category, 0) + 1
    return [{'name': name, 'value': value} for name, value in counts.items()]


def stock_status(product: dict) -> str:
    quantity = product.get('quantity', 0)
    if quantity == 0:
        return 'Out of Stock'
    if quantity < product.get('reorder_level', 0):
        return 'Low Stock'
    return 'In Stock'


def stock_summary(products: List[dict]) -> Dict[str, int]:
    """Counts for the inventory header: products at or above their reorder
    level, products running low but not empty, and empty products."""
    summary = {'total_products': len(products), 'in_stock': 0, 'low_stock': 0, 'out_of_stock': 0}
    for p in products:
        quantity, reorder = p.get('quantity', 0), p.get('reorder_level', 0)
        if quantity >= reorder:
            summary['in_stock'] += 1
        if 0 < quantity < reorder:
            summary['low_stock'] += 1
        if quantity == 0:
            summary['out_of_stock'] += 1
    return summary


def dashboard_stats(
    products: List[dict],
    sales: List[dict],
    now: Optional[pd.Timestamp] = None,
    tz: str = STORE_TIMEZONE
) -> Dict:
    """
    Headline numbers for the dashboard

    Args:
        products: Serialized products
        sales: Serialized sales
        now: Reference time (defaults to now in the store timezone)
        tz: Timezone for calendar days

    Returns:
        dict: Totals, 7-day changes, 14-day chart, top products and categories
    """
    now = now if now is not None else _now(tz)
    df = sales_frame(sales, tz)

    window = pd.Timedelta(days=DASHBOARD_COMPARE_DAYS)
    last = df[df['created_at'] > now - window]
    previous = df[(df['created_at'] > now - 2 * window) & (df['created_at'] <= now - window)]

    recent = df[df['created_at'] > now - pd.Timedelta(days=DASHBOARD_CHART_DAYS)]

    return {
        'total_revenue': float(df['total'].sum()),
        'total_sales': int(len(df)),
        'total_products': len(products),
        'low_stock_items': sum(1 for p in products if p.get('quantity', 0) < p.get('reorder_level', 0)),
        'revenue_change': _percent_change(float(last['total'].sum()), float(previous['total'].sum())),
        'sales_change': _percent_change(len(last), len(previous)),
        'chart': _daily_series(recent, now, DASHBOARD_CHART_DAYS),
        'top_products': top_products(df, DASHBOARD_TOP_PRODUCTS),
        'categories': category_distribution(products),
    }


def sales_report(
    products: List[dict],
    sales: List[dict],
    range_key: str = '7days',
    now: Optional[pd.Timestamp] = None,
    tz: str = STORE_TIMEZONE
) -> Dict:
    """
    Period report over the last 7, 30 or 90 days

    Args:
        products: Serialized products (for category lookups)
        sales: Serialized sales
        range_key: One of REPORT_RANGES
        now: Reference time (defaults to now in the store timezone)
        tz: Timezone for calendar days

    Returns:
        dict: Totals, daily trend, top products, payment and category breakdowns
    """
    if range_key not in REPORT_RANGES:
        raise ValueError(f"Unknown report range: {range_key}")

    days_back, label = REPORT_RANGES[range_key]
    now = now if now is not None else _now(tz)

    df = sales_frame(sales, tz)
    df = df[df['created_at'] > now - pd.Timedelta(days=days_back)]

    total_revenue = float(df['total'].sum())
    total_sales = int(len(df))

    payments = {method: 0.0 for method in PAYMENT_METHODS}
    for method, amount in df.groupby('payment_method')['total'].sum().items():
        payments[method] = payments.get(method, 0.0) + float(amount)

    categories = {p['id']: p.get('category') or 'Uncategorized' for p in products}
    df = df.assign(category=df['product_id'].map(categories))
    by_category = (
        df.dropna(subset=['category'])
        .groupby('category', sort=False)
        .agg(revenue=('total', 'sum'), quantity=('quantity', 'sum'))
    )

    return {
        'range': range_key,
        'period': label,
        'generated_at': now.isoformat(),
        'total_revenue': total_revenue,
        'total_sales': total_sales,
        'total_discount': float(df['discount_amount'].sum()),
        'average_order_value': total_revenue / total_sales if total_sales else 0.0,
        'daily_trend': _daily_series(df, now, days_back),
        'top_products': top_products(df, REPORT_TOP_PRODUCTS),
        'payment_data': [{'method': m.upper(), 'amount': a} for m, a in payments.items()],
        'category_performance': [
            {'category': cat, 'revenue': float(row['revenue']), 'quantity': int(row['quantity'])}
            for cat, row in by_category.iterrows()
        ],
    }


def report_csv(report: Dict) -> str:
    """Render a sales_report() result as a CSV document"""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator='\n')

    generated = pd.Timestamp(report['generated_at']).strftime('%Y-%m-%d %H:%M:%S')

    writer.writerow(['Sales Report'])
    writer.writerow([])
    writer.writerow([f"Period: {report['period']}"])
    writer.writerow([f"Generated: {generated}"])
    writer.writerow([])

    writer.writerow(['Summary'])
    writer.writerow(['Total Revenue', f"${report['total_revenue']:.2f}"])
    writer.writerow(['Total Sales', report['total_sales']])
    writer.writerow(['Average Order Value', f"${report['average_order_value']:.2f}"])
    writer.writerow(['Total Discounts', f"${report['total_discount']:.2f}"])
    writer.writerow([])

    writer.writerow(['Top Products'])
    writer.writerow(['Product Name', 'Quantity Sold', 'Revenue'])
    for p in report['top_products']:
        writer.writerow([p['name'], p['quantity'], f"${p['revenue']:.2f}"])

    return output.getvalue()


def sales_csv(sales: List[dict], tz: str = STORE_TIMEZONE) -> str:
    """One CSV row per sale, in the order given"""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow([
        "Date", "Invoice", "Customer", "Payment", "Product", "Qty",
        "Price", "Subtotal", "Discount %", "Discount", "Total"
    ])
    for s in sales:
        when = local_timestamps([s.get('created_at')], tz).iloc[0]
        writer.writerow([
            when.isoformat(), s.get('invoice_number'), s.get('customer_name'),
            s.get('payment_method'), s.get('product_name'), s.get('quantity'),
            s.get('price'), s.get('subtotal'), s.get('discount'),
            s.get('discount_amount'), s.get('total'),
        ])
    return output.getvalue()


def invoice_text(sale: dict, tz: str = STORE_TIMEZONE) -> str:
    """Plaintext invoice for a single sale"""
    created = local_timestamps([sale.get('created_at')], tz).iloc[0]
    when = created.strftime('%Y-%m-%d %H:%M:%S')

    discount_line = ''
    if sale.get('discount', 0) > 0:
        discount_line = f"Discount ({sale['discount']:g}%): -${sale['discount_amount']:.2f}"

    lines = [
        "INVOICE",
        "======================================",
        f"Invoice #: {sale.get('invoice_number') or sale.get('id')}",
        f"Date: {when}",
        f"Customer: {sale.get('customer_name')}",
        "",
        "ITEMS",
        "======================================",
        f"{sale.get('product_name')}",
        f"Quantity: {sale['quantity']} x ${sale['price']:.2f}",
        f"Subtotal: ${sale['subtotal']:.2f}",
        discount_line,
        "",
        "======================================",
        f"TOTAL: ${sale['total']:.2f}",
        f"Payment Method: {str(sale.get('payment_method', '')).upper()}",
        "",
        "Thank you for your business!",
    ]
    return "\n".join(lines) + "\n"
