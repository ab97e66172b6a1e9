# Overview: Item mutations and invoice actions; orchestrates store, renderer, mail and provenance.

"""
Invoice Pipeline

Every operation follows the same order:
1. validate input (before any write)
2. resolve the item by (item_id, ctx.user_id); absent and foreign look the same
3. perform the primary effect (write, render, send)
4. record provenance (audit entry + notification), best effort

Provenance is written only after step 3 succeeded. If step 3 fails nothing is
recorded and the typed error propagates to the route.

Collaborators (renderer, gateway, provenance recorder, clock) are injected so
the pipeline never branches on which backend it was given.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from ..errors import AppError, DeliveryFailure, InternalError, RenderFailure, ValidationError
from ..models import Item, User
from ..money import format_currency, status_label
from ..validation import parse_item_payload
from . import item_service
from . import provenance_service as prov
from .delivery_service import Attachment, DeliveryGateway, render_invoice_email
from .invoice_renderer import (
    PDF_MEDIA_TYPE,
    DocumentRenderer,
    InvoiceDocument,
    build_invoice_view,
)
from .provenance_service import ProvenanceRecorder, RequestContext
from marketbook.time_utils import utcnow


logger = logging.getLogger(__name__)


def _customer(item: Item) -> str:
    return item.customer_name or "Customer"


class InvoicePipeline:
    def __init__(
        self,
        session,
        renderer: DocumentRenderer,
        gateway: DeliveryGateway,
        provenance: ProvenanceRecorder | None = None,
        clock: Callable[[], datetime] = utcnow,
        currency_symbol: str = "₦",
        issuer_name: str = "Marketbook&solution",
        due_days: int = 30,
    ):
        self.session = session
        self.renderer = renderer
        self.gateway = gateway
        self.provenance = provenance or ProvenanceRecorder(session)
        self.clock = clock
        self.currency_symbol = currency_symbol
        self.issuer_name = issuer_name
        self.due_days = due_days

    # ------------------------------------------------------------------
    # Record mutations
    # ------------------------------------------------------------------

    def _commit(self, what: str, user_id: int) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception("Failed to %s (user_id=%s)", what, user_id)
            raise InternalError(f"Server error while {what}") from e

    def create(self, ctx: RequestContext, payload: dict) -> Item:
        patch = parse_item_payload(payload)

        item = Item(user_id=ctx.user_id, **patch)
        self.session.add(item)
        self._commit("creating item", ctx.user_id)

        self.provenance.record(
            ctx,
            prov.ITEM_CREATED,
            f"Created item: {item.title} for customer: {_customer(item)}",
            message=f'New item "{item.title}" for {_customer(item)} has been created successfully.',
            notification_type="success",
            item_id=item.id,
        )
        return item_service.get_item(ctx.user_id, item.id, session=self.session)

    def update(self, ctx: RequestContext, item_id: int, payload: dict) -> Item:
        patch = parse_item_payload(payload)

        item = item_service.get_item(ctx.user_id, item_id, session=self.session)
        for key, value in patch.items():
            setattr(item, key, value)
        self._commit("updating item", ctx.user_id)

        self.provenance.record(
            ctx,
            prov.ITEM_UPDATED,
            f"Updated item: {item.title} for customer: {_customer(item)}",
            message=f'Item "{item.title}" updated for {_customer(item)}.',
            notification_type="success",
            item_id=item.id,
        )
        return item

    def delete(self, ctx: RequestContext, item_id: int, action: str = prov.ITEM_DELETED) -> dict:
        """Delete and return a snapshot taken before the delete committed."""
        item = item_service.get_item(ctx.user_id, item_id, session=self.session)
        snapshot = item.to_dict(currency_symbol=self.currency_symbol, include_owner=False)

        self.session.delete(item)
        self._commit("deleting item", ctx.user_id)

        title = snapshot["title"]
        customer = snapshot["customer_name"] or "Customer"
        if action == prov.ADMIN_ITEM_DELETED:
            details = f"Admin deleted item: {title}"
            message = f'Item "{title}" has been deleted by admin.'
            notification_type = "warning"
        else:
            details = f"Deleted item: {title} for customer: {customer}"
            message = f'Item "{title}" for {customer} has been deleted.'
            notification_type = "info"

        self.provenance.record(
            ctx, action, details,
            message=message,
            notification_type=notification_type,
            item_id=snapshot["id"],
        )
        return snapshot

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _render(self, item: Item) -> InvoiceDocument:
        owner: User = item.owner
        view = build_invoice_view(
            item,
            owner,
            now=self.clock(),
            currency_symbol=self.currency_symbol,
            issuer_name=self.issuer_name,
            due_days=self.due_days,
        )
        try:
            content = self.renderer.render(view)
        except AppError:
            raise
        except Exception as e:
            logger.exception("Renderer raised an untyped error (item_id=%s)", item.id)
            raise RenderFailure() from e

        return InvoiceDocument(
            item_id=item.id,
            filename=f"invoice-{item.id}.pdf",
            media_type=PDF_MEDIA_TYPE,
            content=content,
            view=view,
        )

    def generate_invoice(self, ctx: RequestContext, item_id: int) -> InvoiceDocument:
        item = item_service.get_item(ctx.user_id, item_id, session=self.session)
        document = self._render(item)

        self.provenance.record(
            ctx,
            prov.INVOICE_GENERATED,
            f"Generated invoice for item: {item.title} for customer: {_customer(item)}",
            message=f'Invoice generated for "{item.title}" for {_customer(item)}.',
            notification_type="success",
            item_id=item.id,
        )
        return document

    def send_invoice_email(self, ctx: RequestContext, item_id: int) -> dict:
        item = item_service.get_item(ctx.user_id, item_id, session=self.session)
        if not item.customer_email:
            raise ValidationError("Customer email is required")

        # Always rendered fresh; invoices are never cached
        document = self._render(item)

        subject = f"Invoice for {item.title}"
        body = render_invoice_email(
            owner_name=item.owner.name,
            customer_name=item.customer_name,
            title=item.title,
            amount=format_currency(item.amount_cents, self.currency_symbol),
            status_label=status_label(item.status),
            customer_address=item.customer_address,
        )
        try:
            self.gateway.send(
                item.customer_email,
                subject,
                body,
                [Attachment(document.filename, document.media_type, document.content)],
            )
        except AppError:
            raise
        except Exception as e:
            logger.exception("Gateway raised an untyped error (item_id=%s)", item.id)
            raise DeliveryFailure() from e

        self.provenance.record(
            ctx,
            prov.EMAIL_SENT,
            f"Sent invoice for item: {item.title} to {item.customer_email}",
            message=f'Invoice email sent to {item.customer_email} for "{item.title}".',
            notification_type="success",
            item_id=item.id,
        )
        return {
            "item_id": item.id,
            "to": item.customer_email,
            "subject": subject,
            "attachment": document.filename,
            "invoice_number": document.view.invoice_number,
        }
