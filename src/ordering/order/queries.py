"""Read-side queries over orders: buyer history, admin listing, dashboard
statistics and invoice data.
"""

import math
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.order.automaton import OrderStatus
from ordering.order.order import Order
from ordering.utils.time import as_utc

PAGE_SIZE = 200
MAX_ADMIN_LIMIT = 100
RECENT_ORDERS = 5
REVENUE_MONTHS = 6

_PENDING_STATUSES = {OrderStatus.PLACED.value, OrderStatus.PACKING.value}


def _query(**filters):
    return current_domain.repository_for(Order)._dao.query.filter(**filters)


def iter_orders(**filters):
    """Yield every order matching ``filters``, newest first, page by page."""
    offset = 0
    while True:
        page = _query(**filters).order_by("-created_at").offset(offset).limit(PAGE_SIZE).all()
        yield from page.items
        if len(page.items) < PAGE_SIZE:
            return
        offset += PAGE_SIZE


def order_ids(**filters) -> list[str]:
    """Ids of all matching orders, collected before any of them is changed."""
    return [str(order.id) for order in iter_orders(**filters)]


def buyer_orders(buyer_id) -> list[Order]:
    return list(iter_orders(buyer_id=str(buyer_id)))


def admin_orders(
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
    payment: str | None = None,
    reconciliation: bool | None = None,
) -> dict:
    """One page of orders for the admin listing.

    ``payment`` is ``"paid"`` or ``"unpaid"``; ``status`` one of the order
    statuses; ``reconciliation`` selects flagged or unflagged orders.
    Returns the orders with page, limit, total and page count.
    """
    if page < 1:
        raise ValidationError({"page": ["Page must be 1 or greater"]})
    if not 1 <= limit <= MAX_ADMIN_LIMIT:
        raise ValidationError({"limit": [f"Limit must be between 1 and {MAX_ADMIN_LIMIT}"]})

    filters = {}
    if status:
        try:
            filters["status"] = OrderStatus(status).value
        except ValueError as exc:
            raise ValidationError({"status": [f"Unknown status {status}"]}) from exc
    if payment:
        if payment not in ("paid", "unpaid"):
            raise ValidationError({"payment": ["Payment filter must be 'paid' or 'unpaid'"]})
        filters["paid"] = payment == "paid"
    if reconciliation is not None:
        filters["reconciliation_required"] = reconciliation

    result = _query(**filters).order_by("-created_at").offset((page - 1) * limit).limit(limit).all()
    return {
        "orders": list(result.items),
        "page": page,
        "limit": limit,
        "total": result.total,
        "pages": math.ceil(result.total / limit) if result.total else 0,
    }


def _month_key(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def _last_months(now: datetime, count: int) -> list[str]:
    keys = []
    year, month = now.year, now.month
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def dashboard_stats(now: datetime | None = None) -> dict:
    now = as_utc(now) or datetime.now(UTC)
    months = _last_months(now, REVENUE_MONTHS)
    revenue_by_month = dict.fromkeys(months, 0.0)
    orders_by_status = {status.value: 0 for status in OrderStatus}

    total_orders = 0
    total_revenue = 0.0
    pending = 0
    recent = []

    for order in iter_orders():
        total_orders += 1
        orders_by_status[order.status] = orders_by_status.get(order.status, 0) + 1
        if order.status in _PENDING_STATUSES:
            pending += 1
        if len(recent) < RECENT_ORDERS:
            recent.append(order)
        if order.paid and not order.refunded:
            total_revenue += order.amount
            key = _month_key(as_utc(order.created_at))
            if key in revenue_by_month:
                revenue_by_month[key] += order.amount

    return {
        "total_orders": total_orders,
        "total_revenue": round(total_revenue, 2),
        "pending_orders": pending,
        "delivered_orders": orders_by_status[OrderStatus.DELIVERED.value],
        "orders_by_status": orders_by_status,
        "revenue_by_month": [{"month": month, "revenue": round(revenue_by_month[month], 2)} for month in months],
        "recent_orders": recent,
    }


def invoice_for(order: Order) -> dict:
    """Invoice data for an order; rendering to PDF happens downstream."""
    created = as_utc(order.created_at)
    return {
        "invoice_number": f"INV-{created:%Y%m%d}-{str(order.id)[:8].upper()}",
        "order_id": str(order.id),
        "issued_at": created.isoformat(),
        "buyer_id": str(order.buyer_id),
        "bill_to": order.address.to_dict() if order.address else {},
        "lines": [
            {
                **line,
                "line_total": round(line["price"] * line["quantity"], 2),
            }
            for line in order.line_snapshot()
        ],
        "subtotal": order.subtotal,
        "delivery_fee": order.delivery_fee,
        "total": order.amount,
        "payment_method": order.payment_method,
        "paid": order.paid,
        "status": order.status,
    }
