"""
PDF downloads: bills, deal contracts, bookings and the activity log
"""

from io import BytesIO
import logging

from flask import Blueprint, request, send_file
from flask_jwt_extended import jwt_required

from app import db
from auth import admin_required, get_current_api_user
from models import Bill, Deal, Booking, CompanySettings
from services import PdfService, BookingService, ActivityService
from services.pdf_service import build_contract
from utils.i18n import get_request_language
from utils.responses import api_error

logger = logging.getLogger(__name__)

pdf_bp = Blueprint('pdf', __name__, url_prefix='/api/v1/pdf')

booking_service = BookingService()
activity_service = ActivityService()


def _pdf_response(content, filename):
    return send_file(BytesIO(content), mimetype='application/pdf', as_attachment=True, download_name=filename)


@pdf_bp.route('/bills/<int:bill_id>', methods=['GET'])
@jwt_required()
@admin_required
def bill_pdf(bill_id):
    bill = db.session.get(Bill, bill_id)
    if not bill:
        return api_error('not_found')
    try:
        lang = get_request_language()
        content = PdfService().generate_bill_pdf(bill, lang, company=CompanySettings.get_settings())
        return _pdf_response(content, f"{bill.bill_number}.pdf")
    except Exception as e:
        logger.error(f"Error generating PDF for bill {bill_id}: {str(e)}")
        return api_error('error_loading_data')


@pdf_bp.route('/deals/<int:deal_id>/contract', methods=['GET'])
@jwt_required()
@admin_required
def contract_pdf(deal_id):
    deal = db.session.get(Deal, deal_id)
    if not deal:
        return api_error('not_found')
    try:
        lang = get_request_language()
        contract = build_contract(deal, CompanySettings.get_settings(), lang)
        content = PdfService().generate_contract_pdf(contract, lang)
        return _pdf_response(content, f"contract-{deal.id}.pdf")
    except Exception as e:
        logger.error(f"Error generating contract for deal {deal_id}: {str(e)}")
        return api_error('error_loading_data')


@pdf_bp.route('/bookings/<int:booking_id>', methods=['GET'])
@jwt_required()
def booking_pdf(booking_id):
    user = get_current_api_user()
    booking = db.session.get(Booking, booking_id)
    if not booking:
        return api_error('booking_not_found')
    if not user or (not user.is_admin and booking.customer_id != user.id):
        return api_error('unauthorized')
    try:
        content = PdfService().generate_booking_pdf(booking_service.get_booking_details(booking_id),
                                                    get_request_language())
        return _pdf_response(content, f"{booking.booking_reference}.pdf")
    except Exception as e:
        logger.error(f"Error generating PDF for booking {booking_id}: {str(e)}")
        return api_error('error_loading_data')


@pdf_bp.route('/logs', methods=['GET'])
@jwt_required()
@admin_required
def logs_pdf():
    try:
        limit = min(max(request.args.get('limit', 500, type=int), 1), 5000)
        logs = activity_service.list_logs(request.args.get('type'), limit=limit)
        content = PdfService().generate_logs_pdf([entry.to_dict() for entry in logs], get_request_language())
        return _pdf_response(content, 'activity-logs.pdf')
    except Exception as e:
        logger.error(f"Error generating logs PDF: {str(e)}")
        return api_error('error_loading_data')
