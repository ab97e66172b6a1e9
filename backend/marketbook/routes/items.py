# Overview: Flask API routes for items and invoices; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..extensions import db
from ..services import item_service
from ..services.invoice_pipeline import InvoicePipeline


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


def build_pipeline() -> InvoicePipeline:
    """Wire the pipeline for this request from the collaborators chosen at startup."""
    cfg = current_app.config
    return InvoicePipeline(
        session=db.session,
        renderer=current_app.extensions["invoice_renderer"],
        gateway=current_app.extensions["delivery_gateway"],
        currency_symbol=cfg["INVOICE_CURRENCY_SYMBOL"],
        issuer_name=cfg["INVOICE_ISSUER_NAME"],
        due_days=cfg["INVOICE_DUE_DAYS"],
    )


def _serialize(item) -> dict:
    return item.to_dict(currency_symbol=current_app.config["INVOICE_CURRENCY_SYMBOL"])


@items_bp.get("")
@require_auth
def list_items_route():
    items = item_service.list_items(g.current_user.id)
    return jsonify({"items": [_serialize(i) for i in items]}), 200


@items_bp.post("")
@require_auth
def create_item_route():
    item = build_pipeline().create(g.request_context, request.get_json(silent=True))
    return jsonify({
        "message": "Item created successfully",
        "item": _serialize(item),
    }), 201


@items_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    item = item_service.get_item(g.current_user.id, item_id)
    return jsonify({"item": _serialize(item)}), 200


@items_bp.put("/<int:item_id>")
@require_auth
def update_item_route(item_id: int):
    item = build_pipeline().update(g.request_context, item_id, request.get_json(silent=True))
    return jsonify({
        "message": "Item updated successfully",
        "item": _serialize(item),
    }), 200


@items_bp.delete("/<int:item_id>")
@require_auth
def delete_item_route(item_id: int):
    snapshot = build_pipeline().delete(g.request_context, item_id)
    return jsonify({
        "message": "Item deleted successfully",
        "item": snapshot,
    }), 200


@items_bp.post("/<int:item_id>/invoice")
@require_auth
def generate_invoice_route(item_id: int):
    """
    Render the invoice and return it inline as a data URI.

    Nothing is stored; every call renders again.
    """
    document = build_pipeline().generate_invoice(g.request_context, item_id)
    return jsonify({
        "message": "Invoice generated successfully",
        "invoice_url": document.to_data_uri(),
        "invoice_number": document.view.invoice_number,
        "total": document.view.total,
    }), 200


@items_bp.post("/<int:item_id>/send-email")
@require_auth
def send_invoice_email_route(item_id: int):
    summary = build_pipeline().send_invoice_email(g.request_context, item_id)
    return jsonify({
        "message": "Email sent successfully",
        "delivery": summary,
    }), 200
