from app.schemas.common import isoformat


def serialize_product(product: dict) -> dict:
    return {
        "id": str(product["id"]),
        "seller_id": str(product["seller_id"]),
        "title": product.get("title", ""),
        "description": product.get("description", ""),
        "price": product.get("price"),
        "category_id": product.get("category_id"),
        "location": product.get("location", ""),
        "location_coords": product.get("location_coords"),
        "images": [str(url) for url in product.get("images", [])],
        "status": product.get("status", "active"),
        "moderation_status": product.get("moderation_status", "active"),
        "created_at": isoformat(product.get("created_at")),
        "updated_at": isoformat(product.get("updated_at")),
    }


def list_serialize_products(products) -> list:
    return [serialize_product(product) for product in products]
