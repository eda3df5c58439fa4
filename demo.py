"""
Demo data for StockPilot

Seeds demo users, a small product catalog, 90 days of sales history and a
few notifications so the dashboard and forecasts have something to show.
Only empty collections are filled. Run directly to seed the configured database:

    python demo.py
"""

import random
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from auth import hash_password
from config import PAYMENT_METHODS

logger = logging.getLogger("stockpilot.demo")

DEMO_USERS = [
    ("Admin User", "admin@example.com", "admin123", "admin"),
    ("Manager User", "manager@example.com", "manager123", "manager"),
    ("Staff User", "staff@example.com", "staff123", "staff"),
]

# name, sku, price, quantity, reorder level, supplier, category, age in days
DEMO_PRODUCTS = [
    ("Wireless Mouse", "WM-001", 29.99, 45, 20, "TechSupply Co", "Electronics", 90),
    ("USB-C Cable", "UC-002", 12.99, 15, 30, "CableWorld Inc", "Accessories", 85),
    ("Mechanical Keyboard", "MK-003", 89.99, 28, 15, "TechSupply Co", "Electronics", 80),
    ("Laptop Stand", "LS-004", 45.99, 52, 25, "ErgoTech Ltd", "Accessories", 75),
    ("Webcam HD", "WC-005", 65.99, 8, 12, "VisionTech Inc", "Electronics", 70),
    ("Phone Holder", "PH-006", 18.99, 67, 20, "MobileTech Co", "Accessories", 65),
]

HISTORY_DAYS = 90


def seed_demo_data(db, now: Optional[datetime] = None, seed: Optional[int] = None) -> Dict[str, int]:
    """
    Fill empty collections with demo data

    Args:
        db: pymongo Database
        now: Reference time for generated timestamps (defaults to current UTC time)
        seed: Random seed for reproducible sales history

    Returns:
        dict: Number of documents inserted per collection
    """
    now = now or datetime.now(timezone.utc)
    rng = random.Random(seed)
    inserted = {"user": 0, "product": 0, "sale": 0, "notification": 0}

    if db["user"].count_documents({}) == 0:
        for name, email, password, role in DEMO_USERS:
            salt, pw_hash = hash_password(password)
            db["user"].insert_one({
                "name": name, "email": email, "role": role,
                "password_salt": salt, "password_hash": pw_hash,
            })
            inserted["user"] += 1

    if db["product"].count_documents({}) == 0:
        for name, sku, price, qty, reorder, supplier, category, age in DEMO_PRODUCTS:
            db["product"].insert_one({
                "name": name, "sku": sku, "price": price, "quantity": qty,
                "reorder_level": reorder, "supplier": supplier, "category": category,
                "created_at": now - timedelta(days=age),
            })
            inserted["product"] += 1

    products = list(db["product"].find({}))

    if db["sale"].count_documents({}) == 0 and products:
        docs = []
        for days_ago in range(HISTORY_DAYS, -1, -1):
            day_start = now - timedelta(days=days_ago)
            for j in range(rng.randint(3, 10)):
                product = rng.choice(products)
                quantity = rng.randint(1, 3)
                discount = rng.randint(5, 19) if rng.random() > 0.7 else 0
                subtotal = product["price"] * quantity
                discount_amount = subtotal * discount / 100
                created = day_start + timedelta(seconds=rng.randint(0, 24 * 60 * 60 - 1))
                docs.append({
                    "invoice_number": f"INV-{int(created.timestamp() * 1000)}-{j}",
                    "product_id": str(product["_id"]),
                    "product_name": product["name"],
                    "quantity": quantity,
                    "price": product["price"],
                    "subtotal": subtotal,
                    "discount": discount,
                    "discount_amount": discount_amount,
                    "total": subtotal - discount_amount,
                    "payment_method": rng.choice(PAYMENT_METHODS),
                    "customer_name": f"Customer {rng.randint(1, 100)}",
                    "created_at": created,
                })
        db["sale"].insert_many(docs)
        inserted["sale"] = len(docs)

    if db["notification"].count_documents({}) == 0:
        by_name = {p["name"]: str(p["_id"]) for p in products}
        demo_notes = [
            ("low_stock", "Low Stock Alert",
             "USB-C Cable stock is below reorder level (15 units remaining)", "USB-C Cable", 2),
            ("low_stock", "Low Stock Alert",
             "Webcam HD stock is critically low (8 units remaining)", "Webcam HD", 5),
            ("restock", "AI Restock Suggestion",
             "Recommended to reorder 50 units of Wireless Mouse based on demand forecast", "Wireless Mouse", 24),
        ]
        for ntype, title, message, product_name, hours_ago in demo_notes:
            db["notification"].insert_one({
                "type": ntype, "title": title, "message": message,
                "product_id": by_name.get(product_name), "read": False,
                "created_at": now - timedelta(hours=hours_ago),
            })
            inserted["notification"] += 1

    logger.info("Seeded demo data: %s", inserted)
    return inserted


if __name__ == "__main__":
    from database import db

    logging.basicConfig(level=logging.INFO)
    if db is None:
        raise SystemExit("DATABASE_URL / DATABASE_NAME not set. Check your .env file.")
    print(seed_demo_data(db))
