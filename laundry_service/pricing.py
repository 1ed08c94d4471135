from typing import List, Tuple

from laundry_service.database import database, row_to_dict
from laundry_service.errors import NotFound, ValidationFailed
from laundry_service.models import services
from laundry_service.schemas import LineItemRequest


def order_total(line_items: List[dict]) -> float:
    return sum(item["unit_price"] * item["quantity"] for item in line_items)


async def resolve_line_items(requested: List[LineItemRequest]) -> Tuple[List[dict], float]:
    """
    Price the requested services against the catalog.

    Returns the resolved line items (service id, name, unit price, quantity)
    in request order, and their total.
    """
    wanted = {item.service_id for item in requested}
    rows = await database.fetch_all(services.select().where(services.c.id.in_(list(wanted))))
    catalog = {row["id"]: row_to_dict(services, row) for row in rows}

    line_items = []
    for item in requested:
        service = catalog.get(item.service_id)
        if service is None:
            raise NotFound(f"Service {item.service_id} not found")
        if not service["available"]:
            raise ValidationFailed(f"Service {service['name']} is not available")
        line_items.append({
            "service_id": service["id"],
            "name": service["name"],
            "unit_price": service["price_per_unit"],
            "quantity": item.quantity,
        })

    return line_items, order_total(line_items)
