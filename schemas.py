"""
StockPilot Database Schemas

Each Pydantic model below represents a MongoDB collection. The collection
name is the lowercase of the class name (e.g., Product -> "product").
"""

from pydantic import BaseModel, Field, EmailStr
from typing import Optional, Literal
from datetime import datetime


Role = Literal['admin', 'manager', 'staff']
PaymentMethod = Literal['cash', 'card', 'upi']
NotificationType = Literal['low_stock', 'restock', 'sales_target']


class User(BaseModel):
    name: str = Field(..., description="Display name")
    email: EmailStr = Field(..., description="Login email, unique")
    role: Role = Field('staff', description="Access role")
    password_salt: str = Field(..., description="Random salt for the password hash")
    password_hash: str = Field(..., description="sha256(salt + password)")
    created_at: Optional[datetime] = None


class Product(BaseModel):
    name: str = Field(..., description="Product name")
    sku: str = Field(..., description="Stock keeping unit")
    price: float = Field(..., ge=0, description="Unit price")
    quantity: int = Field(0, ge=0, description="Units on hand")
    reorder_level: int = Field(0, ge=0, description="Stock below this level raises a low-stock alert")
    supplier: str = Field("", description="Supplier name")
    category: str = Field("", description="Product category")
    created_at: Optional[datetime] = None


class Sale(BaseModel):
    invoice_number: str = Field(..., description="Human readable invoice id, INV-<epoch millis>-<id suffix>")
    product_id: str = Field(..., description="ID of product sold")
    product_name: str = Field(..., description="Cached product name at time of sale")
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price at time of sale")
    subtotal: float = Field(..., ge=0)
    discount: float = Field(0, ge=0, le=100, description="Discount percentage")
    discount_amount: float = Field(0, description="subtotal * discount / 100")
    total: float = Field(..., description="subtotal - discount_amount")
    payment_method: PaymentMethod = 'cash'
    customer_name: str = Field(..., description="Customer name or walk-in placeholder")
    created_at: Optional[datetime] = None


class Notification(BaseModel):
    type: NotificationType
    title: str
    message: str
    product_id: Optional[str] = Field(None, description="Related product, if any")
    read: bool = False
    created_at: Optional[datetime] = None


class Setting(BaseModel):
    key: str
    value: str
