"""
PDF Service

Renders bills, deal contracts, booking summaries and the activity log to
PDF with reportlab. Text comes from the translation tables; Hebrew and
Arabic documents are right-aligned with label columns on the right.
"""

from typing import Optional, Dict, Any, List, Tuple
import html
import io
import logging
import os
from dataclasses import dataclass, field
from flask import current_app, has_app_context
from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT, TA_RIGHT, TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from utils.i18n import translate, is_rtl, normalize_language
from timezone_utils import get_local_time_naive
from utils.formatting import format_currency, format_date, format_datetime, format_number_with_commas
from .bill_service import normalize_bill_type
from .balance_service import BalanceService

logger = logging.getLogger(__name__)

DEFAULT_FONT = 'Helvetica'
DEFAULT_BOLD_FONT = 'Helvetica-Bold'
DOCUMENT_FONT = 'DocumentFont'
OWNERSHIP_TRANSFER_DAYS = 3

_registered_fonts: Dict[str, str] = {}


def _text(value: Any, lang: str) -> str:
    if value is None or value == '':
        return translate('not_available', lang)
    return str(value)


def _get(obj: Any, name: str, default=None):
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


@dataclass
class ContractSection:
    heading: str
    rows: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class Contract:
    """Contract text ready for rendering, already in the target language"""
    lang: str
    title: str
    deal_date: str
    sections: List[ContractSection]
    terms: List[str]
    signatures: List[str]
    plate_number: str = ''


def build_contract(deal: Any, company: Any, lang: Optional[str] = None) -> Contract:
    """
    Interpolate a deal into the localized contract template.

    The company is the seller unless the deal is an intermediary deal, in
    which case the deal's seller is. Exchange deals get a trade-in section.

    Args:
        deal: Deal model
        company: CompanySettings model or dict
        lang: 'he', 'ar' or 'en'
    """
    lang = normalize_language(lang or 'he')

    def t(key, **kwargs):
        return translate(key, lang, **kwargs)

    car = _get(deal, 'car')

    company_rows = [
        (t('contract_company'), _text(_get(company, 'name'), lang)),
        (t('contract_tax_number'), _text(_get(company, 'tax_number'), lang)),
        (t('contract_address'), _text(_get(company, 'address'), lang)),
        (t('phone'), _text(_get(company, 'phone'), lang)),
    ]

    is_intermediary = bool(_get(deal, 'is_intermediary'))
    seller = _get(deal, 'seller') if is_intermediary else None
    buyer = _get(deal, 'buyer') if is_intermediary else None
    buyer = buyer or _get(deal, 'customer')

    def person_rows(person):
        return [
            (t('customer_name'), _text(_get(person, 'name'), lang)),
            (t('customer_id'), _text(_get(person, 'id_number'), lang)),
            (t('phone'), _text(_get(person, 'phone'), lang)),
        ]

    sections = [ContractSection(t('contract_seller'), person_rows(seller) if seller else company_rows)]
    if seller:
        sections.insert(0, ContractSection(t('contract_company'), company_rows))
    sections.append(ContractSection(t('contract_buyer'), person_rows(buyer)))

    sections.append(ContractSection(t('contract_vehicle'), [
        (t('contract_make'), _text(_get(car, 'brand'), lang)),
        (t('contract_model'), _text(_get(car, 'model'), lang)),
        (t('contract_year'), _text(_get(car, 'year'), lang)),
        (t('contract_plate'), _text(_get(car, 'car_number'), lang)),
        (t('contract_kilometers'), format_number_with_commas(_get(car, 'kilometers'), 0)),
    ]))

    if _get(deal, 'deal_type') == 'exchange':
        sections.append(ContractSection(t('contract_trade_in'), [
            (t('contract_make'), _text(_get(deal, 'customer_car_brand'), lang)),
            (t('contract_model'), _text(_get(deal, 'customer_car_model'), lang)),
            (t('contract_year'), _text(_get(deal, 'customer_car_year'), lang)),
            (t('contract_plate'), _text(_get(deal, 'customer_car_number'), lang)),
            (t('contract_estimated_value'), format_currency(_get(deal, 'customer_car_eval_value'))),
        ]))

    deal_amount = _get(deal, 'selling_price') or _get(deal, 'amount') or 0.0
    bills = _get(deal, 'bills')
    bills = bills.all() if hasattr(bills, 'all') else list(bills or [])
    paid = sum(abs(BalanceService.calculate_total_payment_amount(bill, bill.payments)) for bill in bills
               if normalize_bill_type(bill.bill_type) != 'tax_invoice')
    payment_rows = [(t('total_amount'), format_currency(deal_amount))]
    if paid:
        payment_rows.append((t('paid_amount'), format_currency(paid)))
        payment_rows.append((t('remaining_amount'), format_currency(max(deal_amount - paid, 0.0))))
    sections.append(ContractSection(t('contract_payment'), payment_rows))

    terms = [
        t('contract_term_liens'),
        t('contract_term_as_is'),
        t('contract_term_inspected'),
        t('contract_term_transfer', days=OWNERSHIP_TRANSFER_DAYS),
        t('contract_term_binding'),
    ]

    return Contract(
        lang=lang,
        title=t('contract_title'),
        deal_date=format_date(_get(deal, 'deal_date')),
        sections=sections,
        terms=terms,
        signatures=[t('contract_seller_signature'), t('contract_buyer_signature')],
        plate_number=_get(car, 'car_number') or '',
    )


class PdfService:
    """Service class for PDF generation"""

    def __init__(self, font_path: Optional[str] = None):
        if font_path is None and has_app_context():
            font_path = current_app.config.get('PDF_FONT_PATH')
        self.font, self.bold_font = self._register_font(font_path)

    @staticmethod
    def _register_font(font_path: Optional[str]) -> Tuple[str, str]:
        """Register a TTF with Hebrew and Arabic glyphs; Helvetica when none is configured"""
        if not font_path:
            return DEFAULT_FONT, DEFAULT_BOLD_FONT
        if font_path in _registered_fonts:
            name = _registered_fonts[font_path]
            return name, name
        if not os.path.exists(font_path):
            logger.warning(f"PDF font not found at {font_path}, using {DEFAULT_FONT}")
            return DEFAULT_FONT, DEFAULT_BOLD_FONT
        try:
            name = f"{DOCUMENT_FONT}{len(_registered_fonts) + 1}"
            pdfmetrics.registerFont(TTFont(name, font_path))
            _registered_fonts[font_path] = name
            return name, name
        except Exception as e:
            logger.error(f"Error registering PDF font {font_path}: {str(e)}")
            return DEFAULT_FONT, DEFAULT_BOLD_FONT

    def _styles(self, lang: str) -> Dict[str, ParagraphStyle]:
        alignment = TA_RIGHT if is_rtl(lang) else TA_LEFT
        base = getSampleStyleSheet()
        return {
            'title': ParagraphStyle('DocTitle', parent=base['Title'], fontName=self.bold_font,
                                    fontSize=18, leading=22, alignment=TA_CENTER),
            'heading': ParagraphStyle('DocHeading', parent=base['Heading3'], fontName=self.bold_font,
                                      fontSize=12, leading=15, alignment=alignment, spaceBefore=8),
            'body': ParagraphStyle('DocBody', parent=base['Normal'], fontName=self.font,
                                   fontSize=10, leading=13, alignment=alignment),
            'muted': ParagraphStyle('DocMuted', parent=base['Normal'], fontName=self.font,
                                    fontSize=8, leading=10, alignment=alignment,
                                    textColor=colors.HexColor('#475569')),
        }

    def _para(self, text: Any, style: ParagraphStyle) -> Paragraph:
        return Paragraph(html.escape(str(text)).replace('\n', '<br/>'), style)

    def _build(self, story: List[Any], page_size=A4) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=page_size, leftMargin=18 * mm, rightMargin=18 * mm,
                                topMargin=16 * mm, bottomMargin=16 * mm)
        doc.build(story)
        return buffer.getvalue()

    def _details_table(self, rows: List[Tuple[str, str]], lang: str, styles, width: float = 174 * mm) -> Table:
        """Two-column label/value table; RTL documents put the label on the right"""
        data = []
        for label, value in rows:
            cells = [self._para(label, styles['heading']), self._para(value, styles['body'])]
            data.append(list(reversed(cells)) if is_rtl(lang) else cells)
        widths = [width * 0.65, width * 0.35] if is_rtl(lang) else [width * 0.35, width * 0.65]
        table = Table(data, colWidths=widths)
        table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('LINEBELOW', (0, 0), (-1, -1), 0.25, colors.lightgrey),
            ('TOPPADDING', (0, 0), (-1, -1), 2),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 2),
        ]))
        return table

    def _grid_table(self, header: List[str], rows: List[List[Any]], lang: str, styles,
                    col_widths: Optional[List[float]] = None) -> Table:
        data = [[self._para(cell, styles['heading']) for cell in header]]
        data += [[self._para(cell, styles['body']) for cell in row] for row in rows]
        if is_rtl(lang):
            data = [list(reversed(row)) for row in data]
            col_widths = list(reversed(col_widths)) if col_widths else None
        table = Table(data, colWidths=col_widths, repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.lightgrey),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('LEFTPADDING', (0, 0), (-1, -1), 4),
            ('RIGHTPADDING', (0, 0), (-1, -1), 4),
        ]))
        return table

    # Bills

    def generate_bill_pdf(self, bill: Any, lang: Optional[str] = None,
                          company: Any = None) -> bytes:
        """
        Render a bill. The layout follows the normalized bill type:
        general, tax_invoice, receipt_only or tax_invoice_receipt.

        Returns:
            bytes: PDF document
        """
        lang = normalize_language(lang or 'he')
        bill_type = normalize_bill_type(_get(bill, 'bill_type'))
        builders = {
            'general': self._general_bill_story,
            'tax_invoice': self._tax_invoice_story,
            'receipt_only': self._receipt_only_story,
            'tax_invoice_receipt': self._tax_invoice_receipt_story,
        }
        styles = self._styles(lang)
        story = self._bill_header(bill, bill_type, company, lang, styles)
        story += builders[bill_type](bill, lang, styles)
        story.append(Spacer(1, 24))
        story.append(self._para(translate('signature_line', lang), styles['body']))
        logger.info(f"Rendering {bill_type} PDF for bill {_get(bill, 'bill_number')}")
        return self._build(story)

    def _bill_header(self, bill: Any, bill_type: str, company: Any, lang: str, styles) -> List[Any]:
        story = []
        if company is not None:
            story.append(self._para(_get(company, 'name') or '', styles['heading']))
            company_line = ' | '.join(str(value) for value in (
                _get(company, 'tax_number'), _get(company, 'address'), _get(company, 'phone')) if value)
            if company_line:
                story.append(self._para(company_line, styles['muted']))
        story.append(self._para(translate(f'bill_type_{bill_type}', lang), styles['title']))
        story.append(Spacer(1, 6))
        story.append(self._para(translate('document_info', lang), styles['heading']))
        story.append(self._details_table([
            (translate('bill_number', lang), _text(_get(bill, 'bill_number'), lang)),
            (translate('date', lang), format_date(_get(bill, 'issue_date')) or translate('not_available', lang)),
            (translate('status', lang), _text(_get(bill, 'status'), lang)),
        ], lang, styles))
        story.append(self._para(translate('customer_details', lang), styles['heading']))
        story.append(self._details_table([
            (translate('customer_name', lang), _text(_get(bill, 'customer_name'), lang)),
            (translate('phone', lang), _text(_get(bill, 'customer_phone'), lang)),
        ], lang, styles))
        booking = _get(bill, 'booking')
        if booking is not None:
            story.append(self._details_table([
                (translate('booking_reference', lang), _text(_get(booking, 'booking_reference'), lang)),
            ], lang, styles))
        return story

    def _description_block(self, bill: Any, lang: str, styles) -> List[Any]:
        if not _get(bill, 'description'):
            return []
        return [self._para(translate('description', lang), styles['heading']),
                self._para(_get(bill, 'description'), styles['body'])]

    def _tax_rows(self, bill: Any, lang: str) -> List[Tuple[str, str]]:
        return [
            (translate('subtotal', lang), format_currency(_get(bill, 'subtotal'))),
            (f"{translate('tax', lang)} ({format_number_with_commas(_get(bill, 'tax_rate'), 0)}%)",
             format_currency(_get(bill, 'tax_amount'))),
            (translate('total_amount', lang), format_currency(_get(bill, 'total_amount'))),
        ]

    def _payments_block(self, bill: Any, lang: str, styles) -> List[Any]:
        payments = list(_get(bill, 'payments') or [])
        rows = []
        for payment in payments:
            payment_type = _get(payment, 'payment_type') or 'other'
            details = _get(payment, 'check_number') or _get(payment, 'transfer_number') \
                or _get(payment, 'visa_last_four') or ''
            rows.append([translate(f'payment_{payment_type}', lang), details,
                         format_date(_get(payment, 'payment_date')), format_currency(_get(payment, 'amount'))])
        if not rows:
            total = abs(BalanceService.calculate_total_payment_amount(bill))
            rows.append([translate('payment_other', lang), '', format_date(_get(bill, 'issue_date')),
                         format_currency(total)])
        header = [translate('payment_method', lang), translate('details', lang),
                  translate('date', lang), translate('amount', lang)]
        return [self._para(translate('payment_details', lang), styles['heading']),
                self._grid_table(header, rows, lang, styles, [45 * mm, 55 * mm, 34 * mm, 40 * mm])]

    def _paid_amount(self, bill: Any) -> float:
        return abs(BalanceService.calculate_total_payment_amount(bill, list(_get(bill, 'payments') or [])))

    def _general_bill_story(self, bill: Any, lang: str, styles) -> List[Any]:
        story = self._description_block(bill, lang, styles)
        story += self._payments_block(bill, lang, styles)
        story.append(self._para(translate('financial_summary', lang), styles['heading']))
        story.append(self._details_table([
            (translate('paid_amount', lang), format_currency(self._paid_amount(bill))),
        ], lang, styles))
        return story

    def _tax_invoice_story(self, bill: Any, lang: str, styles) -> List[Any]:
        story = [self._para(translate('invoice_details', lang), styles['heading'])]
        story += self._description_block(bill, lang, styles)
        story.append(self._grid_table(
            [translate('description', lang), translate('quantity', lang),
             translate('unit_price', lang), translate('amount', lang)],
            [[_get(bill, 'description') or translate('not_available', lang),
              format_number_with_commas(_get(bill, 'quantity') or 1, 0),
              format_currency(_get(bill, 'unit_price') or _get(bill, 'subtotal')),
              format_currency(_get(bill, 'subtotal'))]],
            lang, styles, [80 * mm, 24 * mm, 35 * mm, 35 * mm]))
        story.append(self._para(translate('financial_summary', lang), styles['heading']))
        story.append(self._details_table(self._tax_rows(bill, lang), lang, styles))
        return story

    def _receipt_only_story(self, bill: Any, lang: str, styles) -> List[Any]:
        story = [self._para(translate('receipt_details', lang), styles['heading'])]
        story += self._description_block(bill, lang, styles)
        story += self._payments_block(bill, lang, styles)
        story.append(self._details_table([
            (translate('paid_amount', lang), format_currency(self._paid_amount(bill))),
        ], lang, styles))
        return story

    def _tax_invoice_receipt_story(self, bill: Any, lang: str, styles) -> List[Any]:
        story = self._tax_invoice_story(bill, lang, styles)
        story += self._payments_block(bill, lang, styles)
        paid = self._paid_amount(bill)
        remaining = max((_get(bill, 'total_amount') or 0.0) - paid, 0.0)
        story.append(self._details_table([
            (translate('paid_amount', lang), format_currency(paid)),
            (translate('remaining_amount', lang), format_currency(remaining)),
        ], lang, styles))
        return story

    # Contracts, bookings, logs

    def generate_contract_pdf(self, contract: Contract, lang: Optional[str] = None) -> bytes:
        lang = normalize_language(lang or contract.lang)
        styles = self._styles(lang)
        story = [self._para(contract.title, styles['title']),
                 self._para(f"{translate('date', lang)}: {contract.deal_date}", styles['body']),
                 Spacer(1, 8)]
        for section in contract.sections:
            story.append(self._para(section.heading, styles['heading']))
            story.append(self._details_table(section.rows, lang, styles))
        story.append(self._para(translate('contract_terms', lang), styles['heading']))
        for index, term in enumerate(contract.terms, start=1):
            story.append(self._para(f"{index}. {term}", styles['body']))
        story.append(Spacer(1, 30))
        signature_cells = [self._para(f"{label}: _______________", styles['body']) for label in contract.signatures]
        story.append(Table([signature_cells]))
        return self._build(story)

    def generate_booking_pdf(self, booking: Dict[str, Any], lang: Optional[str] = None) -> bytes:
        """
        Render a booking summary.

        Args:
            booking: Booking details as returned by BookingService.get_booking_details
        """
        lang = normalize_language(lang or 'he')
        styles = self._styles(lang)
        story = [self._para(translate('booking_details', lang), styles['title']), Spacer(1, 6)]
        story.append(self._details_table([
            (translate('booking_reference', lang), _text(booking.get('booking_reference'), lang)),
            (translate('trip_date', lang), format_date(booking.get('trip_date')) or translate('not_available', lang)),
            (translate('destination', lang), _text(booking.get('destination_name'), lang)),
            (translate('school', lang), _text(booking.get('school_name'), lang)),
            (translate('customer_name', lang), _text(booking.get('customer_name'), lang)),
            (translate('status', lang), _text(booking.get('status'), lang)),
        ], lang, styles))

        rows = [[line.get('service_name') or line.get('service_type'),
                 format_number_with_commas(line.get('quantity'), 0),
                 format_number_with_commas(line.get('days'), 0),
                 format_currency(line.get('booked_price')),
                 format_currency(line.get('line_total'))]
                for line in booking.get('services') or []]
        if rows:
            story.append(self._para(translate('services', lang), styles['heading']))
            story.append(self._grid_table(
                [translate('services', lang), translate('quantity', lang), translate('days', lang),
                 translate('unit_price', lang), translate('amount', lang)],
                rows, lang, styles, [62 * mm, 22 * mm, 22 * mm, 34 * mm, 34 * mm]))

        story.append(self._para(translate('financial_summary', lang), styles['heading']))
        story.append(self._details_table([
            (translate('total_amount', lang), format_currency(booking.get('total_amount'))),
        ], lang, styles))
        return self._build(story)

    def generate_logs_pdf(self, logs: List[Dict[str, Any]], lang: Optional[str] = None) -> bytes:
        """Activity log table on landscape pages"""
        lang = normalize_language(lang or 'he')
        styles = self._styles(lang)
        rows = []
        for entry in logs:
            subject = entry.get('deal') or entry.get('car') or entry.get('bill') or entry.get('provider') or {}
            details = subject.get('title') or subject.get('name') or subject.get('bill_number') or ''
            rows.append([format_datetime(entry.get('created_at')), entry.get('type') or '', details])
        story = [self._para(translate('activity_logs', lang), styles['title']),
                 self._para(f"{translate('generated_on', lang)}: {format_datetime(get_local_time_naive())}", styles['muted']),
                 Spacer(1, 8),
                 self._grid_table([translate('date', lang), translate('log_type', lang), translate('details', lang)],
                                  rows, lang, styles, [45 * mm, 55 * mm, 160 * mm])]
        return self._build(story, page_size=landscape(A4))
