import os
import re
import time
import logging
from datetime import datetime, timezone
from typing import Optional, Literal, Any, Dict

from fastapi import FastAPI, HTTPException, Query, Response, Depends
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, EmailStr

from database import db
from bson.objectid import ObjectId

import analytics
import forecasting
import schemas
from auth import hash_password, verify_password, public_user, normalize_email
from config import (
    LOG_LEVEL, STORE_TIMEZONE, DEFAULT_CUSTOMER_NAME,
    PRODUCT_EDITOR_ROLES, ANALYST_ROLES
)
from demo import seed_demo_data

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("stockpilot")

app = FastAPI(title="StockPilot API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------ Utilities ------------------

def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid ID")


def serialize(doc: Dict[str, Any]):
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    # MongoDB hands back naive UTC datetimes unless the client is tz aware
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
            d[k] = v.astimezone(timezone.utc).isoformat()
    return d


def now_utc():
    return datetime.now(timezone.utc)


def contains(q: str) -> Dict[str, str]:
    return {"$regex": re.escape(q), "$options": "i"}


# ------------------ Schemas ------------------
class RegisterIn(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: schemas.Role = 'staff'


class LoginIn(BaseModel):
    email: str
    password: str


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    quantity: int = Field(0, ge=0)
    reorder_level: int = Field(0, ge=0)
    supplier: str = ""
    category: str = ""


class SaleIn(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    discount: float = Field(0, ge=0, le=100)
    payment_method: Literal['cash', 'card', 'upi'] = 'cash'
    customer_name: Optional[str] = None


# ------------------ Health/Test ------------------
@app.get("/")
def read_root():
    return {"message": "StockPilot Backend is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_url": "Set" if os.getenv("DATABASE_URL") else "Not Set",
        "database_name": "Set" if os.getenv("DATABASE_NAME") else "Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "Connected & Working"
            response["connection_status"] = "Connected"
            response["collections"] = db.list_collection_names()
    except Exception as e:
        response["database"] = f"Error: {str(e)[:120]}"
    return response


# ------------------ Settings & Session ------------------
SETTINGS_COLL = "setting"
CURRENT_USER_KEY = "current_user"


def get_setting(key: str) -> Optional[str]:
    doc = db[SETTINGS_COLL].find_one({"key": key})
    return doc.get("value") if doc else None


def set_setting(key: str, value: str):
    data = schemas.Setting(key=key, value=value).model_dump(exclude_none=True)
    data["updated_at"] = now_utc()
    db[SETTINGS_COLL].update_one({"key": key}, {"$set": data}, upsert=True)


def delete_setting(key: str):
    db[SETTINGS_COLL].delete_one({"key": key})


def current_user() -> Dict[str, Any]:
    user_id = get_setting(CURRENT_USER_KEY)
    if not user_id:
        raise HTTPException(401, "Not logged in")
    doc = db["user"].find_one({"_id": oid(user_id)})
    if not doc:
        raise HTTPException(401, "Session user no longer exists")
    return public_user(serialize(doc))


def require_roles(*roles: str):
    def dependency(user: Dict[str, Any] = Depends(current_user)):
        if user["role"] not in roles:
            raise HTTPException(403, f"Role '{user['role']}' is not allowed here")
        return user
    return dependency


# ------------------ Auth ------------------
@app.post("/api/auth/register")
def register(payload: RegisterIn):
    email = normalize_email(payload.email)
    if db["user"].find_one({"email": email}):
        raise HTTPException(400, "Email already registered")
    salt, pw_hash = hash_password(payload.password)
    user = schemas.User(
        name=payload.name,
        email=email,
        role=payload.role,
        password_salt=salt,
        password_hash=pw_hash,
        created_at=now_utc(),
    )
    res = db["user"].insert_one(user.model_dump())
    logger.info("Registered %s user %s", payload.role, email)
    return public_user(serialize(db["user"].find_one({"_id": res.inserted_id})))


@app.post("/api/auth/login")
def login(payload: LoginIn):
    email = normalize_email(payload.email)
    doc = db["user"].find_one({"email": email})
    if not doc or not verify_password(payload.password, doc.get("password_salt", ""), doc.get("password_hash", "")):
        logger.warning("Failed login for %s", email)
        raise HTTPException(401, "Invalid email or password")
    user = public_user(serialize(doc))
    set_setting(CURRENT_USER_KEY, user["id"])
    return {"authenticated": True, "user": user}


@app.post("/api/auth/logout")
def logout():
    delete_setting(CURRENT_USER_KEY)
    return {"status": "ok"}


@app.get("/api/auth/me")
def me(user: Dict[str, Any] = Depends(current_user)):
    return user


@app.post("/api/demo/seed")
def seed_demo():
    return {"inserted": seed_demo_data(db)}


# ------------------ Notifications (helpers) ------------------
def create_notification(ntype: str, title: str, message: str, product_id: Optional[str] = None):
    data = {
        "type": ntype,
        "title": title,
        "message": message,
        "product_id": product_id,
        "read": False,
        "created_at": now_utc(),
    }
    res = db["notification"].insert_one(schemas.Notification(**data).model_dump())
    logger.info("Notification (%s): %s", ntype, message)
    return serialize(db["notification"].find_one({"_id": res.inserted_id}))


def low_stock_notification(product: Dict[str, Any], message: str):
    return create_notification("low_stock", "Low Stock Alert", message, product["id"])


# ------------------ Products / Stock ------------------
def product_view(doc: Dict[str, Any]) -> Dict[str, Any]:
    d = serialize(doc)
    d["low_stock"] = d.get("quantity", 0) < d.get("reorder_level", 0)
    d["stock_status"] = analytics.stock_status(d)
    return d


@app.get("/api/products")
def list_products(q: Optional[str] = None, user: Dict[str, Any] = Depends(current_user)):
    filt: Dict[str, Any] = {}
    if q:
        filt = {"$or": [
            {"name": contains(q)},
            {"sku": contains(q)},
            {"category": contains(q)},
        ]}
    return [product_view(d) for d in db["product"].find(filt).sort("name", 1)]


@app.get("/api/products/summary")
def products_summary(user: Dict[str, Any] = Depends(current_user)):
    return analytics.stock_summary([serialize(p) for p in db["product"].find({})])


@app.get("/api/products/{product_id}")
def get_product(product_id: str, user: Dict[str, Any] = Depends(current_user)):
    doc = db["product"].find_one({"_id": oid(product_id)})
    if not doc:
        raise HTTPException(404, "Product not found")
    return product_view(doc)


@app.post("/api/products")
def create_product(payload: ProductIn, user: Dict[str, Any] = Depends(require_roles(*PRODUCT_EDITOR_ROLES))):
    data = schemas.Product(**payload.model_dump(), created_at=now_utc()).model_dump()
    res = db["product"].insert_one(data)
    d = product_view(db["product"].find_one({"_id": res.inserted_id}))
    logger.info("Created product %s (%s)", d["name"], d["sku"])
    if d["quantity"] < d["reorder_level"]:
        low_stock_notification(d, f"{d['name']} stock is below reorder level ({d['quantity']} units remaining)")
    return d


@app.put("/api/products/{product_id}")
def update_product(product_id: str, payload: ProductIn, user: Dict[str, Any] = Depends(require_roles(*PRODUCT_EDITOR_ROLES))):
    update = payload.model_dump()
    update["updated_at"] = now_utc()
    res = db["product"].update_one({"_id": oid(product_id)}, {"$set": update})
    if res.matched_count == 0:
        raise HTTPException(404, "Product not found")
    logger.info("Updated product %s", product_id)
    return product_view(db["product"].find_one({"_id": oid(product_id)}))


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, user: Dict[str, Any] = Depends(require_roles(*PRODUCT_EDITOR_ROLES))):
    # Sales and notifications keep their product_id
    res = db["product"].delete_one({"_id": oid(product_id)})
    if res.deleted_count == 0:
        raise HTTPException(404, "Product not found")
    logger.info("Deleted product %s", product_id)
    return {"status": "ok"}


# ------------------ Sales ------------------
@app.get("/api/sales")
def list_sales(q: Optional[str] = None, user: Dict[str, Any] = Depends(current_user)):
    filt: Dict[str, Any] = {}
    if q:
        filt = {"$or": [
            {"product_name": contains(q)},
            {"customer_name": contains(q)},
            {"invoice_number": contains(q)},
        ]}
    return [serialize(s) for s in db["sale"].find(filt).sort("created_at", -1)]


@app.post("/api/sales")
def create_sale(payload: SaleIn, user: Dict[str, Any] = Depends(current_user)):
    prod = db["product"].find_one({"_id": oid(payload.product_id)})
    if not prod:
        raise HTTPException(404, "Product not found")

    qty = int(payload.quantity)
    # Conditional decrement: stock never goes below zero
    res = db["product"].update_one(
        {"_id": prod["_id"], "quantity": {"$gte": qty}},
        {"$inc": {"quantity": -qty}, "$set": {"updated_at": now_utc()}}
    )
    if res.modified_count == 0:
        logger.warning("Rejected sale of %d x %s: only %d in stock", qty, prod["name"], prod.get("quantity", 0))
        raise HTTPException(400, "Insufficient stock available")

    price = float(prod.get("price", 0.0))
    subtotal = price * qty
    discount = float(payload.discount)
    discount_amount = subtotal * discount / 100

    sale_id = ObjectId()
    # Trailing hex of an ObjectId is its per-process counter
    sale_doc = schemas.Sale(
        invoice_number=f"INV-{int(time.time() * 1000)}-{str(sale_id)[-6:]}",
        product_id=str(prod["_id"]),
        product_name=prod["name"],
        quantity=qty,
        price=price,
        subtotal=subtotal,
        discount=discount,
        discount_amount=discount_amount,
        total=subtotal - discount_amount,
        payment_method=payload.payment_method,
        customer_name=payload.customer_name or DEFAULT_CUSTOMER_NAME,
        created_at=now_utc(),
    )
    db["sale"].insert_one({"_id": sale_id, **sale_doc.model_dump()})
    sale = serialize(db["sale"].find_one({"_id": sale_id}))
    logger.info("Sale %s: %d x %s, total %.2f", sale["invoice_number"], qty, prod["name"], sale["total"])

    updated = serialize(db["product"].find_one({"_id": prod["_id"]}))
    if updated["quantity"] < updated.get("reorder_level", 0):
        low_stock_notification(updated, f"{updated['name']} stock is running low ({updated['quantity']} units remaining)")

    return sale


@app.get("/api/sales/export")
def export_sales_csv(user: Dict[str, Any] = Depends(current_user)):
    sales = [serialize(s) for s in db["sale"].find({}).sort("created_at", -1)]
    csv_data = analytics.sales_csv(sales, STORE_TIMEZONE)
    return Response(content=csv_data, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=sales.csv"})


@app.get("/api/sales/{sale_id}")
def get_sale(sale_id: str, user: Dict[str, Any] = Depends(current_user)):
    doc = db["sale"].find_one({"_id": oid(sale_id)})
    if not doc:
        raise HTTPException(404, "Sale not found")
    return serialize(doc)


@app.get("/api/sales/{sale_id}/invoice")
def get_invoice(sale_id: str, user: Dict[str, Any] = Depends(current_user)):
    sale = get_sale(sale_id, user)
    return Response(content=analytics.invoice_text(sale, STORE_TIMEZONE), media_type="text/plain")


# ------------------ Analytics ------------------
def load_catalog():
    products = [serialize(p) for p in db["product"].find({})]
    sales = [serialize(s) for s in db["sale"].find({})]
    return products, sales


@app.get("/api/stats/dashboard")
def stats_dashboard(user: Dict[str, Any] = Depends(current_user)):
    products, sales = load_catalog()
    stats = analytics.dashboard_stats(products, sales, tz=STORE_TIMEZONE)

    pipeline_payments = [
        {"$group": {"_id": "$payment_method", "amount": {"$sum": "$total"}}}
    ]
    stats["payment_modes"] = [{"mode": d["_id"], "amount": d["amount"]} for d in db["sale"].aggregate(pipeline_payments)]
    return stats


def build_report(range_key: str):
    products, sales = load_catalog()
    try:
        return analytics.sales_report(products, sales, range_key, tz=STORE_TIMEZONE)
    except ValueError as e:
        raise HTTPException(400, str(e))


@app.get("/api/reports")
def get_report(range_key: str = Query("7days", alias="range"), user: Dict[str, Any] = Depends(require_roles(*ANALYST_ROLES))):
    return build_report(range_key)


@app.get("/api/reports/export")
def export_report_csv(range_key: str = Query("7days", alias="range"), user: Dict[str, Any] = Depends(require_roles(*ANALYST_ROLES))):
    report = build_report(range_key)
    filename = f"sales-report-{range_key}-{int(time.time() * 1000)}.csv"
    return Response(content=analytics.report_csv(report), media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})


# ------------------ Forecasts ------------------
def product_forecast(product_id: str) -> Dict[str, Any]:
    doc = db["product"].find_one({"_id": oid(product_id)})
    if not doc:
        raise HTTPException(404, "Product not found")
    sales = [serialize(s) for s in db["sale"].find({"product_id": product_id})]
    forecast = forecasting.forecast_product(serialize(doc), sales, tz=STORE_TIMEZONE)
    if forecast is None:
        raise HTTPException(404, "No sales history for this product")
    return forecast


@app.get("/api/forecasts")
def list_forecasts(user: Dict[str, Any] = Depends(require_roles(*ANALYST_ROLES))):
    products, sales = load_catalog()
    return forecasting.forecast_all(products, sales, tz=STORE_TIMEZONE)


@app.get("/api/forecasts/{product_id}")
def get_forecast(product_id: str, user: Dict[str, Any] = Depends(require_roles(*ANALYST_ROLES))):
    return product_forecast(product_id)


@app.post("/api/forecasts/{product_id}/apply")
def apply_recommendation(product_id: str, user: Dict[str, Any] = Depends(require_roles(*ANALYST_ROLES))):
    forecast = product_forecast(product_id)
    return create_notification(
        "restock",
        "Restock Recommendation Applied",
        f"Recommended to reorder {forecast['recommended_reorder']} units of {forecast['product_name']}",
        product_id,
    )


# ------------------ Notifications ------------------
@app.get("/api/notifications")
def list_notifications(
    kind: Literal['all', 'unread', 'low_stock', 'restock', 'sales_target'] = Query('all', alias='filter'),
    user: Dict[str, Any] = Depends(current_user),
):
    filt: Dict[str, Any] = {}
    if kind == 'unread':
        filt = {"read": False}
    elif kind != 'all':
        filt = {"type": kind}
    return [serialize(n) for n in db["notification"].find(filt).sort("created_at", -1)]


@app.get("/api/notifications/unread-count")
def unread_count(user: Dict[str, Any] = Depends(current_user)):
    return {"unread": db["notification"].count_documents({"read": False})}


@app.post("/api/notifications/read-all")
def mark_all_read(user: Dict[str, Any] = Depends(current_user)):
    res = db["notification"].update_many({"read": False}, {"$set": {"read": True}})
    return {"status": "ok", "updated": res.modified_count}


@app.post("/api/notifications/{notification_id}/read")
def mark_read(notification_id: str, user: Dict[str, Any] = Depends(current_user)):
    res = db["notification"].update_one({"_id": oid(notification_id)}, {"$set": {"read": True}})
    if res.matched_count == 0:
        raise HTTPException(404, "Notification not found")
    return serialize(db["notification"].find_one({"_id": oid(notification_id)}))


@app.delete("/api/notifications/{notification_id}")
def delete_notification(notification_id: str, user: Dict[str, Any] = Depends(current_user)):
    res = db["notification"].delete_one({"_id": oid(notification_id)})
    if res.deleted_count == 0:
        raise HTTPException(404, "Notification not found")
    return {"status": "ok"}


@app.delete("/api/notifications")
def clear_notifications(user: Dict[str, Any] = Depends(current_user)):
    res = db["notification"].delete_many({})
    return {"status": "ok", "deleted": res.deleted_count}


# ------------------ Backup Export ------------------
@app.get("/api/backup/export")
def export_backup(user: Dict[str, Any] = Depends(require_roles("admin"))):
    data = {
        "users": [public_user(serialize(x)) for x in db["user"].find({})],
        "products": [serialize(x) for x in db["product"].find({})],
        "sales": [serialize(x) for x in db["sale"].find({})],
        "notifications": [serialize(x) for x in db["notification"].find({})],
        "exported_at": now_utc().isoformat(),
    }
    return data


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
