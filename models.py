# models.py
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from errors import InvalidSale

CENTS = Decimal("0.01")


class PaymentMethod(str, Enum):
    CASH = "cash"
    CREDIT = "credit"
    CARD = "card"

    @classmethod
    def parse(cls, value: "PaymentMethod | str") -> "PaymentMethod":
        try:
            return cls(str(value.value if isinstance(value, PaymentMethod) else value).strip().lower())
        except ValueError:
            raise InvalidSale(f"Método de pago inválido: {value!r}") from None


def to_decimal(value: Any) -> Decimal:
    """Convierte a Decimal sin pasar por float binario."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    return Decimal(str(value))


def non_negative(value: Any) -> Decimal:
    """Monto finito y >= 0 (precios, límites de crédito)."""
    amount = to_decimal(value)
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Monto inválido: {value!r}")
    return amount


def whole_number(value: Any) -> int:
    """Entero sin truncar (rechaza bool y 1.7)."""
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(f"Entero inválido: {value!r}")
    return int(value)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def money(value: Decimal) -> str:
    return str(value.quantize(CENTS))


def _ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class Product:
    id: int
    barcode: str
    name: str
    description: str | None
    price: Decimal
    stock: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Product":
        return cls(
            id=row["id"], barcode=row["barcode"], name=row["name"],
            description=row["description"], price=to_decimal(row["price"]),
            stock=row["stock"], created_at=_ts(row["createdAt"]), updated_at=_ts(row["updatedAt"]),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id, "barcode": self.barcode, "name": self.name,
            "description": self.description, "price": money(self.price), "stock": self.stock,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class Customer:
    id: int
    name: str
    phone: str | None
    email: str | None
    credit_limit: Decimal
    balance: Decimal
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Customer":
        return cls(
            id=row["id"], name=row["name"], phone=row["phone"], email=row["email"],
            credit_limit=to_decimal(row["creditLimit"]), balance=to_decimal(row["balance"]),
            created_at=_ts(row["createdAt"]), updated_at=_ts(row["updatedAt"]),
        )

    @property
    def available_credit(self) -> Decimal:
        return self.credit_limit - self.balance

    def to_dict(self) -> dict:
        return {
            "id": self.id, "name": self.name, "phone": self.phone, "email": self.email,
            "creditLimit": money(self.credit_limit), "balance": money(self.balance),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class SaleLine:
    """Renglón de una venta tal como llega del cliente (precio capturado)."""
    product_id: int
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def parse(cls, raw: "SaleLine | Mapping[str, Any]") -> "SaleLine":
        if isinstance(raw, SaleLine):
            product_id, quantity, price = raw.product_id, raw.quantity, raw.unit_price
        elif isinstance(raw, Mapping):
            product_id = raw.get("productId", raw.get("product_id"))
            quantity = raw.get("quantity")
            price = raw.get("unitPrice", raw.get("unit_price"))
        else:
            raise InvalidSale(f"Renglón inválido: {raw!r}")
        if not _is_int(product_id):
            raise InvalidSale(f"Producto inválido: {product_id!r}")
        if not _is_int(quantity) or quantity <= 0:
            raise InvalidSale(f"Cantidad inválida para producto {product_id}: {quantity!r}")
        try:
            unit_price = non_negative(price)
        except (ValueError, ArithmeticError) as e:
            raise InvalidSale(f"Precio inválido para producto {product_id}: {price!r}") from e
        return cls(product_id, quantity, unit_price)


@dataclass(frozen=True)
class Sale:
    id: int
    customer_id: int | None
    total_amount: Decimal
    payment_method: PaymentMethod
    created_at: datetime | None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Sale":
        return cls(
            id=row["id"], customer_id=row["customerId"],
            total_amount=to_decimal(row["totalAmount"]),
            payment_method=PaymentMethod(row["paymentMethod"]),
            created_at=_ts(row["createdAt"]),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id, "customerId": self.customer_id,
            "totalAmount": money(self.total_amount),
            "paymentMethod": self.payment_method.value,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class SaleItem:
    id: int
    sale_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SaleItem":
        return cls(
            id=row["id"], sale_id=row["saleId"], product_id=row["productId"],
            quantity=row["quantity"], unit_price=to_decimal(row["unitPrice"]),
            subtotal=to_decimal(row["subtotal"]),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id, "saleId": self.sale_id, "productId": self.product_id,
            "quantity": self.quantity, "unitPrice": money(self.unit_price),
            "subtotal": money(self.subtotal),
        }


@dataclass(frozen=True)
class SalesSummary:
    count: int
    revenue: Decimal
    average: Decimal

    def to_dict(self) -> dict:
        return {"count": self.count, "revenue": money(self.revenue), "average": money(self.average)}
