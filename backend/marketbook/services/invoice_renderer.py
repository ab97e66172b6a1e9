# Overview: Invoice document rendering; turns an item and its owner into PDF bytes.

"""
Invoice Renderer

Two stages:
1. build_invoice_view() - pure projection of (item, owner) into an InvoiceView.
   Placeholders for missing billing fields are applied here, once.
2. DocumentRenderer.render(view) -> PDF bytes.

Backends:
- LocalPdfRenderer: reportlab platypus, in-process. Documents are built with
  invariant=1 so the same view always produces the same bytes.
- RemotePdfRenderer: renders templates/invoice.html with Jinja2 and posts the
  HTML to an HTML-to-PDF API (PDFShift compatible) over httpx.

Both raise RenderFailure and nothing else.
"""

from __future__ import annotations

import base64
import html
import logging
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from typing import Protocol

import httpx
from jinja2 import Environment, PackageLoader, select_autoescape
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..errors import RenderFailure
from ..models import Item, User
from ..money import format_currency, status_label
from marketbook.time_utils import add_days, format_us_date


logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"

BILLING_PLACEHOLDERS = {
    "street": "Street address not provided",
    "city": "City",
    "state": "State",
    "zip_code": "",
    "country": "Country",
}

# Spelled-out forms for currency signs the active PDF font cannot draw
CURRENCY_FALLBACKS = {
    "₦": "NGN ",
}


@dataclass(frozen=True)
class LineItem:
    description: str
    detail: str | None
    amount: str


@dataclass(frozen=True)
class InvoiceView:
    """Everything printed on an invoice, already formatted."""
    item_id: int
    invoice_number: str
    issue_date: str
    due_date: str
    generated_at: str
    issuer_name: str
    issued_by: str
    issuer_lines: tuple[str, ...]
    bill_to_name: str
    bill_to_lines: tuple[str, ...]
    line_items: tuple[LineItem, ...]
    subtotal: str
    tax: str
    total: str
    status: str
    status_label: str
    footer_lines: tuple[str, ...] = field(default=())

    @property
    def status_class(self) -> str:
        return f"status-{self.status}"


def invoice_number(item_id: int) -> str:
    return f"INV-{item_id:08d}"


def _safe(value: str | None, fallback: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return fallback


def build_invoice_view(
    item: Item,
    owner: User,
    *,
    now: datetime,
    currency_symbol: str = "â¦",
    issuer_name: str = "Marketbook&solution",
    due_days: int = 30,
) -> InvoiceView:
    """Project an item and its owner into an InvoiceView. Reads only."""
    billing = owner.billing_address
    street = _safe(billing.get("street"), BILLING_PLACEHOLDERS["street"])
    city = _safe(billing.get("city"), BILLING_PLACEHOLDERS["city"])
    state = _safe(billing.get("state"), BILLING_PLACEHOLDERS["state"])
    zip_code = _safe(billing.get("zip_code"), BILLING_PLACEHOLDERS["zip_code"])
    country = _safe(billing.get("country"), BILLING_PLACEHOLDERS["country"])

    issuer_lines = (
        street,
        f"{city}, {state} {zip_code}".rstrip(),
        country,
        f"Email: {owner.email}",
    )

    bill_to_lines = tuple(
        line for line in (
            _safe(item.customer_address, ""),
            _safe(item.customer_email, ""),
        ) if line
    )

    amount = format_currency(item.amount_cents, currency_symbol)
    line = LineItem(
        description=item.title,
        detail=_safe(item.description, "") or None,
        amount=amount,
    )

    return InvoiceView(
        item_id=item.id,
        invoice_number=invoice_number(item.id),
        issue_date=format_us_date(item.created_at or now),
        due_date=format_us_date(add_days(now, due_days)),
        generated_at=format_us_date(now),
        issuer_name=issuer_name,
        issued_by=owner.name,
        issuer_lines=issuer_lines,
        bill_to_name=_safe(item.customer_name, "Customer"),
        bill_to_lines=bill_to_lines,
        line_items=(line,),
        subtotal=amount,
        tax=format_currency(0, currency_symbol),
        total=amount,
        status=item.status,
        status_label=status_label(item.status),
        footer_lines=(
            "Thank you for your business!",
            f"This invoice was generated by {issuer_name}",
        ),
    )


@dataclass(frozen=True)
class InvoiceDocument:
    """A rendered invoice. Regenerated on every request, never stored."""
    item_id: int
    filename: str
    media_type: str
    content: bytes
    view: InvoiceView

    def to_data_uri(self) -> str:
        payload = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.media_type};base64,{payload}"


class DocumentRenderer(Protocol):
    def render(self, view: InvoiceView) -> bytes:
        ...


template_env = Environment(
    loader=PackageLoader("marketbook", "templates"),
    autoescape=select_autoescape(["html"]),
)


def render_invoice_html(view: InvoiceView) -> str:
    return template_env.get_template("invoice.html").render(view=view)


class LocalPdfRenderer:
    """In-process PDF rendering with reportlab."""

    def __init__(self, font_path: str | None = None):
        self.font_name = "Helvetica"
        self.bold_font_name = "Helvetica-Bold"
        if font_path:
            # A TTF is needed for glyphs outside WinAnsi, e.g. the naira sign
            pdfmetrics.registerFont(TTFont("InvoiceFont", font_path))
            pdfmetrics.registerFontFamily(
                "InvoiceFont", normal="InvoiceFont", bold="InvoiceFont",
                italic="InvoiceFont", boldItalic="InvoiceFont",
            )
            self.font_name = self.bold_font_name = "InvoiceFont"

    def can_draw(self, char: str) -> bool:
        font = pdfmetrics.getFont(self.font_name)
        face = getattr(font, "face", None)
        if hasattr(face, "charToGlyph"):
            return ord(char) in face.charToGlyph
        # Standard Type 1 fonts are WinAnsi encoded
        try:
            char.encode("cp1252")
        except UnicodeEncodeError:
            return False
        return True

    def printable(self, text: str) -> str:
        """Swap currency signs the font has no glyph for, e.g. '₦99.99' -> 'NGN 99.99'."""
        for sign, fallback in CURRENCY_FALLBACKS.items():
            if sign in text and not self.can_draw(sign):
                text = text.replace(sign, fallback)
        return text

    def render(self, view: InvoiceView) -> bytes:
        try:
            return self._build(view)
        except Exception as e:
            logger.exception("PDF generation error (item_id=%s)", view.item_id)
            raise RenderFailure() from e

    def _styles(self) -> dict[str, ParagraphStyle]:
        base = getSampleStyleSheet()
        normal = ParagraphStyle("inv-normal", parent=base["Normal"], fontName=self.font_name, fontSize=10, leading=14)
        return {
            "normal": normal,
            "right": ParagraphStyle("inv-right", parent=normal, alignment=TA_RIGHT),
            "center": ParagraphStyle("inv-center", parent=normal, alignment=TA_CENTER, textColor=colors.grey),
            "title": ParagraphStyle("inv-title", parent=normal, fontName=self.bold_font_name, fontSize=20, leading=24),
            "heading": ParagraphStyle("inv-heading", parent=normal, fontName=self.bold_font_name, fontSize=12, leading=16),
        }

    def _build(self, view: InvoiceView) -> bytes:
        buf = BytesIO()
        doc = SimpleDocTemplate(
            buf,
            pagesize=A4,
            leftMargin=18 * mm,
            rightMargin=18 * mm,
            topMargin=16 * mm,
            bottomMargin=16 * mm,
            title=f"Invoice {view.invoice_number}",
            author=view.issuer_name,
            invariant=1,
        )
        s = self._styles()

        def esc(value: str) -> str:
            return html.escape(self.printable(value))

        story = []

        company = [
            Paragraph(esc(view.issuer_name), s["title"]),
            Paragraph(f"<b>Issued By:</b> {esc(view.issued_by)}", s["normal"]),
            *(Paragraph(esc(line), s["normal"]) for line in view.issuer_lines if line),
        ]
        invoice_info = [
            Paragraph("INVOICE", ParagraphStyle("inv-h2", parent=s["title"], alignment=TA_RIGHT)),
            Paragraph(f"<b>Invoice #:</b> {esc(view.invoice_number)}", s["right"]),
            Paragraph(f"<b>Date:</b> {esc(view.issue_date)}", s["right"]),
            Paragraph(f"<b>Due Date:</b> {esc(view.due_date)}", s["right"]),
        ]
        header = Table([[company, invoice_info]], colWidths=[105 * mm, 69 * mm])
        header.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LINEBELOW", (0, 0), (-1, 0), 1, colors.HexColor("#2563eb")),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 10),
        ]))
        story.append(header)
        story.append(Spacer(1, 8 * mm))

        story.append(Paragraph("Bill To:", s["heading"]))
        story.append(Paragraph(f"<b>{esc(view.bill_to_name)}</b>", s["normal"]))
        for line in view.bill_to_lines:
            story.append(Paragraph(esc(line), s["normal"]))
        story.append(Spacer(1, 6 * mm))

        rows = [[Paragraph("<b>Description</b>", s["normal"]), Paragraph("<b>Amount</b>", s["right"])]]
        for li in view.line_items:
            text = f"<b>{esc(li.description)}</b>"
            if li.detail:
                text += f"<br/><font size='8'>{esc(li.detail)}</font>"
            rows.append([Paragraph(text, s["normal"]), Paragraph(esc(li.amount), s["right"])])
        items_table = Table(rows, repeatRows=1, colWidths=[134 * mm, 40 * mm])
        items_table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f4f6")),
            ("LINEBELOW", (0, 0), (-1, -1), 0.5, colors.HexColor("#e5e7eb")),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("TOPPADDING", (0, 0), (-1, -1), 6),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
        ]))
        story.append(items_table)
        story.append(Spacer(1, 4 * mm))

        totals = Table(
            [
                [Paragraph("Subtotal:", s["normal"]), Paragraph(esc(view.subtotal), s["right"])],
                [Paragraph("Tax:", s["normal"]), Paragraph(esc(view.tax), s["right"])],
                [Paragraph("<b>Total:</b>", s["normal"]), Paragraph(f"<b>{esc(view.total)}</b>", s["right"])],
            ],
            colWidths=[40 * mm, 40 * mm],
        )
        totals.setStyle(TableStyle([("LINEABOVE", (0, -1), (-1, -1), 1, colors.black)]))
        wrap = Table([[totals]], colWidths=[174 * mm])
        wrap.setStyle(TableStyle([("ALIGN", (0, 0), (-1, -1), "RIGHT")]))
        story.append(wrap)
        story.append(Spacer(1, 6 * mm))

        story.append(Paragraph(f"<b>Payment Status: {esc(view.status_label)}</b>", s["normal"]))
        story.append(Spacer(1, 10 * mm))
        for line in view.footer_lines:
            story.append(Paragraph(esc(line), s["center"]))

        doc.build(story)
        return buf.getvalue()


class RemotePdfRenderer:
    """
    HTML-to-PDF over HTTP.

    The API receives {"source": <html>} and answers with the PDF bytes.
    Authenticated with HTTP basic auth (api key as username).
    """

    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def render(self, view: InvoiceView) -> bytes:
        if not self.api_key:
            logger.error("PDF render API key is not configured")
            raise RenderFailure()

        source = render_invoice_html(view)
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            response = client.post(
                self.api_url,
                json={"source": source, "format": "A4"},
                auth=(self.api_key, ""),
            )
        except httpx.HTTPError as e:
            logger.exception("PDF render API request failed (item_id=%s)", view.item_id)
            raise RenderFailure() from e
        finally:
            if self._client is None:
                client.close()

        if response.status_code != 200:
            logger.error(
                "PDF render API returned %s (item_id=%s): %s",
                response.status_code, view.item_id, response.text[:500],
            )
            raise RenderFailure()

        if not response.content.startswith(b"%PDF"):
            logger.error("PDF render API returned a non-PDF body (item_id=%s)", view.item_id)
            raise RenderFailure()
        return response.content


def build_renderer(config) -> DocumentRenderer:
    """Pick the backend once at startup from INVOICE_RENDER_BACKEND."""
    backend = (config.get("INVOICE_RENDER_BACKEND") or "local").lower()
    if backend == "remote":
        return RemotePdfRenderer(
            api_url=config["PDF_RENDER_API_URL"],
            api_key=config.get("PDF_RENDER_API_KEY"),
            timeout=config.get("PDF_RENDER_TIMEOUT_SECONDS", 30.0),
        )
    if backend != "local":
        raise ValueError(f"Unknown INVOICE_RENDER_BACKEND: {backend}")
    return LocalPdfRenderer(font_path=config.get("INVOICE_PDF_FONT_PATH"))
