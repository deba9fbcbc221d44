"""
Notification Service

Booking emails sent to service providers and customers. Messages are
bilingual (Hebrew and Arabic) and delivered through the configured email
function over HTTP.
"""

from typing import Optional, Dict, Any, Tuple
from dataclasses import dataclass, asdict
import logging
import requests
from flask import current_app
from utils.formatting import format_price

logger = logging.getLogger(__name__)

EMAIL_TIMEOUT = 15


@dataclass
class BookingNotificationData:
    booking_id: int
    booking_reference: str
    service_type: str
    service_name: str
    service_email: str
    trip_date: str
    destination: str
    booked_price: float
    quantity: int
    days: int
    booking_service_id: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_EMAIL_STYLE = """
        body { font-family: Arial, sans-serif; line-height: 1.6; background-color: #f4f4f4; margin: 0; padding: 0; }
        .container { max-width: 600px; margin: 20px auto; background: white; border-radius: 10px; overflow: hidden; }
        .header { background: #667eea; color: white; padding: 30px; text-align: center; }
        .content { padding: 30px; }
        .section { margin-bottom: 25px; border-bottom: 1px solid #eee; padding-bottom: 20px; }
        .label { font-weight: bold; color: #555; margin-bottom: 5px; }
        .value { color: #333; font-size: 16px; }
        .button { display: inline-block; padding: 15px 25px; text-decoration: none; border-radius: 8px; font-weight: bold; color: white; }
        .accept { background-color: #10b981; }
        .reject { background-color: #ef4444; }
        .view { background-color: #3b82f6; }
        .footer { background-color: #f9fafb; padding: 20px; text-align: center; color: #666; font-size: 14px; }
        .hebrew, .arabic { text-align: right; direction: rtl; }
"""


def _detail_row(he_label: str, ar_label: str, value: str) -> str:
    return f"""
            <div class="section">
                <div class="hebrew"><div class="label">{he_label}</div><div class="value">{value}</div></div>
                <div class="arabic"><div class="label">{ar_label}</div><div class="value">{value}</div></div>
            </div>"""


class NotificationService:
    """Service class for booking email notifications"""

    def _app_url(self) -> str:
        return (current_app.config.get('APP_URL') or '').rstrip('/')

    def send_email(self, to: str, subject: str, html: str) -> Tuple[bool, Optional[str]]:
        """
        Send an email through the email function.

        Args:
            to: Recipient address
            subject: Email subject
            html: HTML body

        Returns:
            tuple: (success: bool, error_message: str)
        """
        url = current_app.config.get('EMAIL_FUNCTION_URL')
        if not url:
            logger.warning(f"Email function not configured, email to {to} not sent")
            return False, "Email service not configured"

        headers = {'Content-Type': 'application/json'}
        token = current_app.config.get('EMAIL_FUNCTION_TOKEN')
        if token:
            headers['Authorization'] = f'Bearer {token}'

        try:
            response = requests.post(url, json={'to': to, 'subject': subject, 'html': html},
                                     headers=headers, timeout=EMAIL_TIMEOUT)
            if not response.ok:
                logger.error(f"Email function returned {response.status_code} for {to}")
                return False, "Failed to send email"
            logger.info(f"Email sent to {to}: {subject}")
            return True, None
        except requests.RequestException as e:
            logger.error(f"Error sending email to {to}: {str(e)}")
            return False, f"Failed to send email: {str(e)}"

    def booking_service_links(self, booking_service_id: int) -> Dict[str, str]:
        view_link = f"{self._app_url()}/service/bookings/{booking_service_id}"
        return {
            'accept': f"{view_link}?action=accept",
            'reject': f"{view_link}?action=reject",
            'view': view_link,
        }

    def build_booking_notification_html(self, data: BookingNotificationData) -> str:
        """Provider email with accept, reject and view buttons"""
        links = self.booking_service_links(data.booking_service_id)
        details = ''.join([
            _detail_row('📅 תאריך הטיול', '📅 تاريخ الرحلة', data.trip_date),
            _detail_row('📍 יעד', '📍 الوجهة', data.destination),
            _detail_row('💰 מחיר מוסכם', '💰 السعر المتفق عليه', format_price(data.booked_price)),
            _detail_row('📊 כמות / ימים', '📊 الكمية / الأيام', f"{data.quantity} × {data.days}"),
        ])
        return f"""<!DOCTYPE html>
<html dir="rtl">
<head>
    <meta charset="UTF-8">
    <style>{_EMAIL_STYLE}</style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1 style="margin: 0;">🎉 הזמנה חדשה | حجز جديد</h1>
            <p style="margin: 10px 0 0 0;">מספר הזמנה | رقم الحجز: {data.booking_reference}</p>
        </div>
        <div class="content">
            <div class="hebrew">
                <h2>שלום {data.service_name},</h2>
                <p>קיבלת הזמנה חדשה לשירותיך. אנא עיין בפרטים ואשר או דחה את ההזמנה.</p>
            </div>
            <div class="arabic">
                <h2>مرحباً {data.service_name}،</h2>
                <p>لقد تلقيت حجزاً جديداً لخدماتك. يرجى مراجعة التفاصيل وقبول أو رفض الحجز.</p>
            </div>
            {details}
            <div style="text-align: center;">
                <a href="{links['accept']}" class="button accept">✓ אישור | قبول</a>
                <a href="{links['reject']}" class="button reject">✗ דחייה | رفض</a>
                <a href="{links['view']}" class="button view">👁 צפייה | عرض</a>
            </div>
        </div>
        <div class="footer">
            <p>הודעה זו נשלחה אוטומטית | هذه الرسالة أرسلت تلقائياً</p>
        </div>
    </div>
</body>
</html>"""

    def build_customer_confirmation_html(self, booking_reference: str, trip_date: str,
                                         destination_name: str, view_link: str) -> str:
        details = ''.join([
            _detail_row('🔖 מספר הזמנה', '🔖 رقم الحجز', booking_reference),
            _detail_row('📅 תאריך הטיול', '📅 تاريخ الرحلة', trip_date),
            _detail_row('📍 יעד', '📍 الوجهة', destination_name),
        ])
        return f"""<!DOCTYPE html>
<html dir="rtl">
<head>
    <meta charset="UTF-8">
    <style>{_EMAIL_STYLE}</style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1 style="margin: 0;">✅ הזמנתך אושרה | تم تأكيد حجزك</h1>
        </div>
        <div class="content">
            <div class="hebrew"><p>כל נותני השירות אישרו את ההזמנה שלך.</p></div>
            <div class="arabic"><p>جميع مقدمي الخدمات وافقوا على حجزك.</p></div>
            {details}
            <div style="text-align: center;">
                <a href="{view_link}" class="button view">👁 צפייה בהזמנה | عرض الحجز</a>
            </div>
        </div>
    </div>
</body>
</html>"""

    def send_booking_notification_to_service(self, data: BookingNotificationData) -> Tuple[bool, Optional[str]]:
        """
        Email a provider about a new booking line.

        Returns:
            tuple: (success: bool, error_message: str)
        """
        try:
            html = self.build_booking_notification_html(data)
        except Exception as e:
            logger.error(f"Error building booking notification: {str(e)}")
            return False, "Failed to build notification"
        subject = f"הזמנה חדשה | حجز جديد - {data.booking_reference}"
        return self.send_email(data.service_email, subject, html)

    def send_booking_confirmation_to_customer(self, booking) -> Tuple[bool, Optional[str]]:
        """
        Email the booking customer once every provider accepted.

        Args:
            booking: Booking model with its customer loaded

        Returns:
            tuple: (success: bool, error_message: str)
        """
        if booking is None:
            return False, "Booking not found"
        customer_email = booking.customer.email if booking.customer else None
        if not customer_email:
            logger.warning(f"Booking {booking.booking_reference} has no customer email")
            return False, "Customer email not available"

        view_link = f"{self._app_url()}/bookings/preview/{booking.id}"
        html = self.build_customer_confirmation_html(
            booking.booking_reference,
            booking.trip_date.isoformat() if booking.trip_date else '',
            booking.destination.name if booking.destination else '',
            view_link,
        )
        subject = f"הזמנתך אושרה | تم تأكيد حجزك - {booking.booking_reference}"
        return self.send_email(customer_email, subject, html)

    def send_invitation(self, email: str, token: str, full_name: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        """Invite a new user to set up their account"""
        link = f"{self._app_url()}/auth/accept-invite?token={token}"
        name = full_name or email
        html = f"""<!DOCTYPE html>
<html dir="rtl">
<head><meta charset="UTF-8"><style>{_EMAIL_STYLE}</style></head>
<body>
    <div class="container">
        <div class="header"><h1 style="margin: 0;">הזמנה למערכת | دعوة إلى النظام</h1></div>
        <div class="content">
            <div class="hebrew"><p>שלום {name}, הוזמנת להצטרף למערכת.</p></div>
            <div class="arabic"><p>مرحباً {name}، تمت دعوتك للانضمام إلى النظام.</p></div>
            <div style="text-align: center;"><a href="{link}" class="button view">כניסה | دخول</a></div>
        </div>
    </div>
</body>
</html>"""
        return self.send_email(email, "הזמנה למערכת | دعوة إلى النظام", html)
