"""Read-side shaping of carts and orders for API responses."""

import json

from protean.utils.globals import current_domain

from ordering.catalogue.product import Product, Shop


def _iso(value):
    return value.isoformat() if value else None


def _address(address):
    if address is None:
        return None
    return {
        "street": address.street,
        "city": address.city,
        "state": address.state,
        "zip_code": address.zip_code,
        "country": address.country,
        "phone": address.phone,
    }


def cart_view(cart) -> dict:
    """Cart with each line's product and vendor summary populated."""
    products = current_domain.repository_for(Product)
    shops = current_domain.repository_for(Shop)

    items = []
    for item in cart.items:
        product = products.find_product(item.product_id)
        shop = shops.for_vendor(item.vendor_id)
        items.append(
            {
                "id": str(item.id),
                "product_id": str(item.product_id),
                "vendor_id": str(item.vendor_id),
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "line_total": item.line_total,
                "size": item.size,
                "color": item.color,
                "is_available": item.is_available,
                "added_at": _iso(item.added_at),
                "last_stock_check_at": _iso(item.last_stock_check_at),
                "product": product.summary() if product else None,
                "vendor": {"store_name": shop.name, "location": shop.city} if shop else None,
            }
        )

    return {
        "id": str(cart.id),
        "owner_id": str(cart.owner_id),
        "items": items,
        "total_items": cart.total_items,
        "subtotal": cart.subtotal,
        "summary": cart.summary(),
        "last_activity": _iso(cart.last_activity),
    }


def order_item_view(item) -> dict:
    snapshot = item.product_snapshot
    vendor = item.vendor_snapshot
    return {
        "id": str(item.id),
        "product_id": str(item.product_id),
        "vendor_id": str(item.vendor_id),
        "shop_id": str(item.shop_id) if item.shop_id else None,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "size": item.size,
        "color": item.color,
        "status": item.status,
        "product": {
            "name": snapshot.name,
            "images": json.loads(snapshot.images) if snapshot.images else [],
            "category": snapshot.category,
        }
        if snapshot
        else None,
        "vendor": {
            "name": vendor.name,
            "store_name": vendor.store_name,
            "location": vendor.location,
        }
        if vendor
        else None,
        "tracking_number": item.tracking_number,
        "tracking_url": item.tracking_url,
        "shipped_at": _iso(item.shipped_at),
        "delivered_at": _iso(item.delivered_at),
        "refund_amount": item.refund_amount or 0.0,
        "refund_reason": item.refund_reason,
        "refund_status": item.refund_status,
        "refunded_at": _iso(item.refunded_at),
    }


def order_view(order) -> dict:
    pricing = order.pricing
    history = sorted(order.status_history, key=lambda e: e.changed_at)
    return {
        "id": str(order.id),
        "order_number": order.order_number,
        "customer_id": str(order.customer_id),
        "status": order.status,
        "items": [order_item_view(i) for i in order.items],
        "vendor_groups": [
            {
                "vendor_id": str(g.vendor_id),
                "shop_id": str(g.shop_id) if g.shop_id else None,
                "item_ids": g.item_id_list,
                "subtotal": g.subtotal,
                "status": g.status,
            }
            for g in order.vendor_groups
        ],
        "subtotal": pricing.subtotal,
        "tax_amount": pricing.tax_amount,
        "shipping_fee": pricing.shipping_fee,
        "discount_amount": pricing.discount_amount,
        "total_amount": pricing.total_amount,
        "currency": pricing.currency,
        "applied_coupons": json.loads(order.applied_coupons) if order.applied_coupons else [],
        "shipping_address": _address(order.shipping_address),
        "payment": payment_view(order),
        "status_history": [
            {
                "status": e.status,
                "actor": e.actor,
                "reason": e.reason,
                "note": e.note,
                "item_id": str(e.item_id) if e.item_id else None,
                "changed_at": _iso(e.changed_at),
            }
            for e in history
        ],
        "created_at": _iso(order.created_at),
    }


def payment_view(order) -> dict:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "payment_gateway": order.payment_gateway,
        "payment_intent_id": order.payment_intent_id,
        "transaction_id": order.transaction_id,
        "captured_at": _iso(order.payment_captured_at),
        "total_amount": order.pricing.total_amount,
        "total_refunded": order.total_refunded,
    }
