# roomdesk/services/payload_formatters.py
from typing import Any, Dict, Optional


def _to_time_str(val: Any) -> str:
    try:
        return val.strftime("%H:%M")
    except AttributeError:
        return str(val) if val is not None else ""


def _to_date_str(val: Any) -> str:
    try:
        # date or datetime -> YYYY-MM-DD
        return val.date().isoformat() if hasattr(val, "date") else val.isoformat()
    except AttributeError:
        return str(val) if val is not None else ""


def _to_ts_str(val: Any) -> Optional[str]:
    return val.isoformat() + "Z" if val is not None else None


def _money(val: Any) -> Optional[float]:
    return float(val) if val is not None else None


def _status(val: Any) -> Optional[str]:
    return getattr(val, "value", val)


def format_booking(b) -> Dict[str, Any]:
    return {
        "id": b.id,
        "bid": b.bid,
        "storeId": b.store_id,
        "roomId": b.room_id,
        "roomName": b.room.name if b.room is not None else None,
        "date": _to_date_str(b.date),
        "startTime": _to_time_str(b.start_time),
        "endTime": _to_time_str(b.end_time),
        "duration": b.duration,
        "status": _status(b.status),
        "customerName": b.customer_name,
        "phone": b.phone,
        "referenceNo": b.reference_no,
        "note": b.note,
        "price": _money(b.price),
        "paymentMethod": b.payment_method,
        "dualPayment": b.dual_payment,
        "price2": _money(b.price_2),
        "paymentMethod2": b.payment_method_2,
        "variantId": b.variant_id,
        "createdBy": b.created_by,
        "confirmedBy": b.confirmed_by,
        "confirmedAt": _to_ts_str(b.confirmed_at),
        "checkedInBy": b.checked_in_by,
        "checkedInAt": _to_ts_str(b.checked_in_at),
        "checkedOutBy": b.checked_out_by,
        "checkedOutAt": _to_ts_str(b.checked_out_at),
        "cancelledBy": b.cancelled_by,
        "cancelledAt": _to_ts_str(b.cancelled_at),
        "version": b.version,
        "products": [{
            "productName": p.product_name,
            "productPrice": _money(p.product_price),
            "quantity": p.quantity,
            "subtotal": _money(p.subtotal),
        } for p in b.products],
    }


def format_booking_request(r, include_token=False) -> Dict[str, Any]:
    payload = {
        "id": r.id,
        "bid": r.bid,
        "storeId": r.store_id,
        "roomId": r.room_id,
        "roomName": r.room_name,
        "categoryId": r.category_id,
        "categoryName": r.category_name,
        "variantName": r.variant_name,
        "bookingDate": _to_date_str(r.booking_date),
        "startTime": _to_time_str(r.start_time),
        "endTime": _to_time_str(r.end_time),
        "duration": r.duration,
        "roomPrice": _money(r.room_price),
        "totalPrice": _money(r.total_price),
        "customerName": r.customer_name,
        "customerPhone": r.customer_phone,
        "paymentMethod": _status(r.payment_method),
        "paymentProofUrl": r.payment_proof_url,
        "status": _status(r.status),
        "expiredAt": _to_ts_str(r.expired_at),
        "paymentStepStartedAt": _to_ts_str(r.payment_step_started_at),
        "adminNotes": r.admin_notes,
        "processedBy": r.processed_by,
        "processedAt": _to_ts_str(r.processed_at),
        "bookingId": r.booking_id,
        "createdAt": _to_ts_str(r.created_at),
    }
    if include_token:
        payload["confirmationToken"] = r.confirmation_token
    return payload


def format_public_request(r) -> Dict[str, Any]:
    """What the customer sees behind their confirmation link."""
    return {
        "bid": r.bid,
        "categoryName": r.category_name,
        "roomName": r.room_name,
        "bookingDate": _to_date_str(r.booking_date),
        "startTime": _to_time_str(r.start_time),
        "endTime": _to_time_str(r.end_time),
        "totalPrice": _money(r.total_price),
        "paymentMethod": _status(r.payment_method),
        "status": _status(r.status),
        "expiredAt": _to_ts_str(r.expired_at),
    }


def format_new_request_notification(r, confirmation_url: str) -> Dict[str, Any]:
    return {
        "bookingRequestId": r.id,
        "bid": r.bid,
        "storeId": r.store_id,
        "customerName": r.customer_name,
        "customerPhone": r.customer_phone,
        "categoryName": r.category_name,
        "bookingDate": _to_date_str(r.booking_date),
        "startTime": _to_time_str(r.start_time),
        "endTime": _to_time_str(r.end_time),
        "totalPrice": _money(r.total_price),
        "paymentMethod": _status(r.payment_method),
        "confirmationUrl": confirmation_url,
    }


def format_daily_status(row) -> Dict[str, Any]:
    status = row.status
    return {
        "roomId": row.room_id,
        "date": _to_date_str(row.date),
        "status": status.label if hasattr(status, "label") else status,
        "updatedBy": row.updated_by,
        "updatedAt": _to_ts_str(row.updated_at),
    }
