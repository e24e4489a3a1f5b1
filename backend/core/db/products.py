"""
Product (inventory) database operations.

current_stock only moves through receive_stock (delivery note approval)
and adjust_stock (manual correction).
"""
import math
from typing import Optional, List, Dict, Any

from .base import get_db, ProductCategory, ALLOWED_PRODUCT_COLUMNS
from .utils import new_id, now, to_iso_date, build_update
from ..errors import ProductNotFoundError

# New products start with a minimum of 30% of the first received quantity
DEFAULT_MIN_STOCK_RATIO = 0.3


def default_min_stock(quantity: float) -> int:
    """Minimum stock for a product first seen with the given quantity."""
    return math.ceil(round(quantity * DEFAULT_MIN_STOCK_RATIO, 6))


def create_product(
    name: str,
    category: ProductCategory = ProductCategory.SONSTIGES,
    unit: str = "Stk",
    current_stock: float = 0,
    min_stock: float = 0,
    avg_price: float = 0,
    supplier_id: Optional[str] = None,
    last_order_date: Optional[str] = None
) -> Dict[str, Any]:
    """Create a new product."""
    product_id = new_id()
    timestamp = now()

    with get_db() as conn:
        conn.execute("""
            INSERT INTO products
            (id, name, category, unit, current_stock, min_stock, avg_price,
             supplier_id, last_order_date, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            product_id, name, ProductCategory(category).value, unit,
            current_stock, min_stock, avg_price, supplier_id,
            to_iso_date(last_order_date), timestamp, timestamp
        ))

    return get_product(product_id)


def get_product(product_id: str) -> Optional[Dict[str, Any]]:
    """Get a product by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        if row:
            return dict(row)
    return None


def find_product_by_name(name: str) -> Optional[Dict[str, Any]]:
    """Find a product by name, ignoring case."""
    wanted = name.lower()
    # SQLite lower() folds ASCII only (Käse vs KÄSE)
    for product in list_products():
        if product["name"].lower() == wanted:
            return product
    return None


def list_products(category: Optional[ProductCategory] = None) -> List[Dict[str, Any]]:
    """List products, optionally by category."""
    query = "SELECT * FROM products"
    params = []
    if category:
        query += " WHERE category = ?"
        params.append(ProductCategory(category).value)
    query += " ORDER BY created_at ASC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
        return [dict(row) for row in rows]


def list_low_stock_products() -> List[Dict[str, Any]]:
    """Products whose current stock is below their minimum."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM products WHERE current_stock < min_stock ORDER BY name ASC"
        ).fetchall()
        return [dict(row) for row in rows]


def is_low_stock(product: Dict[str, Any]) -> bool:
    return product["current_stock"] < product["min_stock"]


def update_product(product_id: str, **updates) -> Optional[Dict[str, Any]]:
    """Update product fields."""
    updates = {k: v for k, v in updates.items() if v is not None}
    if not updates:
        return get_product(product_id)

    if "last_order_date" in updates:
        updates["last_order_date"] = to_iso_date(updates["last_order_date"])
    updates["updated_at"] = now()
    set_clause, values = build_update(updates, ALLOWED_PRODUCT_COLUMNS)

    with get_db() as conn:
        conn.execute(f"UPDATE products SET {set_clause} WHERE id = ?", values + [product_id])

    return get_product(product_id)


def receive_stock(
    product_id: str,
    quantity: float,
    unit_price: float,
    order_date: Optional[str] = None
) -> Dict[str, Any]:
    """
    Add a received quantity to a product's stock.

    The average price becomes the quantity-weighted blend of the old stock
    and the new delivery, but only when the delivery carries a price.
    """
    with get_db():
        product = get_product(product_id)
        if not product:
            raise ProductNotFoundError(product_id)

        old_stock = product["current_stock"]
        old_price = product["avg_price"]
        new_stock = old_stock + quantity

        avg_price = old_price
        if unit_price and new_stock > 0:
            avg_price = round((old_stock * old_price + quantity * unit_price) / new_stock, 2)

        return update_product(
            product_id,
            current_stock=new_stock,
            avg_price=avg_price,
            last_order_date=order_date,
        )


def adjust_stock(product_id: str, delta: float, reason: Optional[str] = None) -> Dict[str, Any]:
    """
    Apply a manual stock correction and record it in stock_adjustments.

    Stock never goes below zero.
    """
    with get_db() as conn:
        product = get_product(product_id)
        if not product:
            raise ProductNotFoundError(product_id)

        previous = product["current_stock"]
        new_stock = max(0, previous + delta)
        if not reason:
            reason = "Manueller Zugang" if delta > 0 else "Manueller Abgang"

        conn.execute(
            "UPDATE products SET current_stock = ?, updated_at = ? WHERE id = ?",
            (new_stock, now(), product_id)
        )
        conn.execute("""
            INSERT INTO stock_adjustments (id, product_id, previous_stock, new_stock, delta, reason, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (new_id(), product_id, previous, new_stock, delta, reason, now()))

    return get_product(product_id)


def list_stock_adjustments(product_id: str) -> List[Dict[str, Any]]:
    """Manual adjustments for a product, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM stock_adjustments WHERE product_id = ? ORDER BY created_at DESC",
            (product_id,)
        ).fetchall()
        return [dict(row) for row in rows]


def delete_product(product_id: str) -> bool:
    """Delete a product."""
    with get_db() as conn:
        conn.execute("DELETE FROM stock_adjustments WHERE product_id = ?", (product_id,))
        result = conn.execute("DELETE FROM products WHERE id = ?", (product_id,))
        return result.rowcount > 0
