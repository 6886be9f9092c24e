import io
import logging
from decimal import Decimal
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from quotedesk.pdf.config import PDFSettings, pdf_settings
from quotedesk.pdf.exceptions import PDFGenerationException
from quotedesk.pdf.generator import AbstractPDFGenerator
from quotedesk.quotations.formatting import format_display_date, format_money
from quotedesk.quotations.models import Quotation

logger = logging.getLogger(__name__)


def _format_qty(qty: Decimal) -> str:
    return format(qty.normalize(), "f")


def _text(value: str) -> str:
    # Paragraph interprète un mini-balisage XML
    return escape(value or "").replace("\n", "<br/>")


class ReportLabPDFGenerator(AbstractPDFGenerator):
    """Implémentation du générateur PDF utilisant ReportLab."""

    def __init__(self, settings: Optional[PDFSettings] = None):
        self.settings = settings or pdf_settings
        self.primary_color = colors.HexColor(self.settings.PRIMARY_COLOR_HEX)

    def _money(self, amount: Decimal) -> str:
        return f"{self.settings.CURRENCY_LABEL} {format_money(amount)}"

    def _letterhead(self, styles) -> List:
        title_style = ParagraphStyle(
            name="CompanyName", parent=styles["Heading1"], alignment=1,
            textColor=self.primary_color, spaceAfter=2,
        )
        subtitle_style = ParagraphStyle(
            name="CompanySubtitle", parent=styles["Heading3"], alignment=1, spaceBefore=0,
        )
        contact_style = ParagraphStyle(
            name="CompanyContact", parent=styles["Normal"], alignment=1, fontSize=9,
            textColor=colors.gray,
        )
        return [
            Paragraph(_text(self.settings.COMPANY_NAME), title_style),
            Paragraph(_text(self.settings.COMPANY_SUBTITLE), subtitle_style),
            Paragraph(_text(self.settings.COMPANY_CONTACT_LINE), contact_style),
            Spacer(1, 0.25 * inch),
        ]

    def _header_table(self, quotation: Quotation, styles) -> Table:
        normal = styles["Normal"]
        client_lines = [f"<b>{_text(quotation.client_name)}</b>"]
        for value in (quotation.company_name, quotation.address, quotation.contact_number):
            if value:
                client_lines.append(_text(value))
        meta_lines = [
            f"<b>Quotation No:</b> {_text(quotation.quotation_number)}",
            f"<b>Date:</b> {_text(quotation.date_issued)}",
            f"<b>Valid Until:</b> {format_display_date(quotation.valid_until)}",
            f"<b>Status:</b> {quotation.status.value}",
        ]
        table = Table(
            [[Paragraph("<br/>".join(client_lines), normal), Paragraph("<br/>".join(meta_lines), normal)]],
            colWidths=[3.6 * inch, 2.9 * inch],
        )
        table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        return table

    def _items_table(self, quotation: Quotation, styles) -> Table:
        normal = styles["Normal"]
        bold = ParagraphStyle(name="Bold", parent=normal, fontName="Helvetica-Bold")
        totals = quotation.calculate_totals()

        table_data = [["S.No", "Requirement", "Qty", "Unit Price", "Amount", "Remark"]]
        for index, item in enumerate(quotation.items, start=1):
            table_data.append([
                str(index),
                Paragraph(_text(item.requirement), normal),
                _format_qty(item.qty),
                self._money(item.unit_price),
                self._money(item.amount),
                Paragraph(_text(item.remark), normal),
            ])
        items_end = len(table_data) - 1

        table_data.append(["", "", "", "Subtotal", self._money(totals.subtotal), ""])
        table_data.append(["", "", "", f"Tax ({_format_qty(quotation.tax_rate)}%)",
                           self._money(totals.tax_amount), ""])
        table_data.append(["", "", "", "Discount", self._money(quotation.discount), ""])
        table_data.append(["", "", "", Paragraph("<b>Grand Total</b>", bold),
                           Paragraph(f"<b>{self._money(totals.grand_total)}</b>", bold), ""])

        table = Table(
            table_data,
            colWidths=[0.5 * inch, 2.1 * inch, 0.5 * inch, 1.2 * inch, 1.3 * inch, 1.1 * inch],
            repeatRows=1,
        )
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), self.primary_color),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("ALIGN", (2, 1), (4, -1), "RIGHT"),
            ("GRID", (0, 0), (-1, items_end), 0.5, colors.darkgrey),
            ("LINEABOVE", (3, -1), (4, -1), 1, colors.black),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ]))
        return table

    async def generate_quotation_pdf(self, quotation: Quotation) -> bytes:
        logger.info(f"[PDFGen] Génération PDF devis {quotation.quotation_number} (id={quotation.id})")

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer, pagesize=A4, title=f"Quotation {quotation.quotation_number}",
            leftMargin=0.7 * inch, rightMargin=0.7 * inch,
        )
        styles = getSampleStyleSheet()
        footer_style = ParagraphStyle(name="Footer", fontSize=9, textColor=colors.gray, alignment=1)

        elements = self._letterhead(styles)
        elements.append(Paragraph("QUOTATION", styles["h2"]))
        elements.append(self._header_table(quotation, styles))
        elements.append(Spacer(1, 0.25 * inch))
        elements.append(self._items_table(quotation, styles))
        elements.append(Spacer(1, 0.3 * inch))
        if quotation.terms:
            elements.append(Paragraph("<b>Terms &amp; Conditions</b>", styles["Normal"]))
            elements.append(Paragraph(_text(quotation.terms), styles["Normal"]))
            elements.append(Spacer(1, 0.15 * inch))
        if quotation.notes:
            elements.append(Paragraph("<b>Notes</b>", styles["Normal"]))
            elements.append(Paragraph(_text(quotation.notes), styles["Normal"]))

        def add_footer(canvas, doc):
            canvas.saveState()
            footer = Paragraph(_text(self.settings.FOOTER_TEXT), footer_style)
            w, h = footer.wrap(doc.width, doc.bottomMargin)
            footer.drawOn(canvas, doc.leftMargin, h)
            canvas.restoreState()

        try:
            doc.build(elements, onFirstPage=add_footer, onLaterPages=add_footer)
        except Exception as e:
            logger.error(f"[PDFGen] Erreur ReportLab build() pour devis {quotation.id}: {e}", exc_info=True)
            raise PDFGenerationException(f"Erreur lors de la construction du PDF: {e}", original_exception=e)

        pdf_bytes = buffer.getvalue()
        buffer.close()
        logger.info(f"[PDFGen] PDF devis {quotation.id} généré en mémoire ({len(pdf_bytes)} bytes).")
        return pdf_bytes
