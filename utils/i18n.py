"""
Translations for API messages, PDF labels and contract text

Supported languages are Hebrew (default), Arabic and English. Missing keys
fall back to English and then to the key itself.
"""

from typing import Any, Dict, Optional
from flask import has_request_context, request, current_app

SUPPORTED_LANGUAGES = ('he', 'ar', 'en')
RTL_LANGUAGES = ('he', 'ar')
FALLBACK_LANGUAGE = 'en'

MESSAGES: Dict[str, Dict[str, str]] = {
    'en': {
        # Toast messages
        'saved_successfully': 'Saved successfully',
        'created_successfully': 'Created successfully',
        'updated_successfully': 'Updated successfully',
        'deleted_successfully': 'Deleted successfully',
        'items_deleted_successfully': '{count} items deleted successfully',
        'error_loading_data': 'Error loading data',
        'error_saving': 'Error saving data',
        'error_deleting': 'Error deleting',
        'error_deleting_provider': 'Error deleting provider. Some related records may not have been removed.',
        'not_found': 'Record not found',
        'invalid_request': 'Invalid request',
        'validation_failed': 'Please check the form for errors',
        'unauthorized': 'You are not allowed to perform this action',
        'identity_number_exists': 'A record with this identity number already exists',
        'code_exists': 'A record with this code already exists',
        'name_exists': 'A record with this name already exists',
        'bill_number_exists': 'A bill with this number already exists',
        'email_exists': 'A user with this email already exists',
        'password_too_short': 'Password must be at least 6 characters',
        'email_password_required': 'Email and password are required',
        'invalid_credentials': 'Invalid email or password',
        'account_inactive': 'Your account is not active',
        'logged_out': 'Logged out successfully',
        'login_successful': 'Logged in successfully',
        'user_created': 'User created successfully',
        'user_deleted': 'User deleted successfully',
        'invitation_sent': 'Invitation sent successfully',
        'invalid_action': 'Invalid action',
        'booking_service_accepted': 'Service accepted successfully',
        'booking_service_rejected': 'Service rejected',
        'notifications_sent': 'Sent {sent} of {total} notifications',
        'booking_confirmed': 'Booking confirmed successfully',
        'payout_created': 'Payout recorded successfully',
        'payment_already_exists': 'Payment already exists for this booking record',
        'tax_invoice_exists': 'A tax invoice already exists for this booking',
        'amount_must_be_positive': 'Amount must be greater than zero',
        'invalid_amount': 'Invalid amount',
        'invalid_payment_type': 'Invalid payment type',
        'invalid_deal_type': 'Invalid deal type',
        'invalid_service_type': 'Invalid service type',
        'invalid_status': 'Invalid status',
        'booking_not_found': 'Booking not found',
        'bill_created': 'Bill created successfully',
        'deal_created': 'Deal created successfully',
        'trip_plan_created': 'Trip plan created successfully',
        'booking_created': 'Booking created successfully',
        'invitation_accepted': 'Your account is now active',
        'invalid_invitation': 'This invitation link is not valid',
        'invitation_expired': 'This invitation link has expired',
        'picture_uploaded': 'Picture uploaded successfully',
        'file_type_not_allowed': 'File type not allowed',
        'file_too_large': 'File is too large',
        # Document labels
        'document_info': 'Document Information',
        'customer_details': 'Customer Details',
        'deal_details': 'Deal Details',
        'payment_details': 'Payment Details',
        'financial_summary': 'Financial Summary',
        'invoice_details': 'Invoice Details',
        'receipt_details': 'Receipt Details',
        'booking_details': 'Booking Details',
        'services': 'Services',
        'bill_number': 'Bill Number',
        'booking_reference': 'Booking Reference',
        'trip_date': 'Trip Date',
        'destination': 'Destination',
        'school': 'School',
        'date': 'Date',
        'status': 'Status',
        'type': 'Type',
        'description': 'Description',
        'customer_name': 'Customer Name',
        'customer_id': 'ID Number',
        'phone': 'Phone',
        'deal_title': 'Deal Title',
        'deal_type': 'Deal Type',
        'vehicle': 'Vehicle',
        'amount': 'Amount',
        'quantity': 'Quantity',
        'days': 'Days',
        'unit_price': 'Unit Price',
        'subtotal': 'Subtotal',
        'tax': 'Tax',
        'total_amount': 'Total Amount',
        'payment_method': 'Payment Method',
        'paid_amount': 'Paid Amount',
        'remaining_amount': 'Remaining Amount',
        'signature_line': 'Signature: _________________',
        'not_available': 'N/A',
        'generated_on': 'Generated on',
        'bill_type_general': 'Bill',
        'bill_type_receipt_only': 'Receipt',
        'bill_type_tax_invoice': 'Tax Invoice',
        'bill_type_tax_invoice_receipt': 'Tax Invoice / Receipt',
        'payment_cash': 'Cash',
        'payment_visa': 'Visa',
        'payment_bank_transfer': 'Bank Transfer',
        'payment_check': 'Check',
        'payment_other': 'Other',
        'activity_logs': 'Activity Logs',
        'log_type': 'Activity',
        'details': 'Details',
        # Contract
        'contract_title': 'Vehicle Purchase Agreement',
        'contract_seller': 'Seller Information',
        'contract_buyer': 'Buyer Information',
        'contract_vehicle': 'Vehicle Information',
        'contract_trade_in': 'Trade-in Vehicle Information',
        'contract_payment': 'Payment Details',
        'contract_terms': 'Terms and Conditions',
        'contract_company': 'Company',
        'contract_tax_number': 'Tax Number',
        'contract_address': 'Address',
        'contract_make': 'Make',
        'contract_model': 'Model',
        'contract_year': 'Year',
        'contract_plate': 'Plate Number',
        'contract_kilometers': 'Kilometers',
        'contract_estimated_value': 'Estimated Value',
        'contract_term_liens': 'The seller guarantees that the vehicle is free of any liens or encumbrances.',
        'contract_term_as_is': 'The vehicle is sold "as is" with no warranties expressed or implied.',
        'contract_term_inspected': 'The buyer has inspected the vehicle and agrees to its current condition.',
        'contract_term_transfer': 'The seller agrees to transfer ownership within {days} days.',
        'contract_term_binding': 'This agreement is binding upon both parties once signed.',
        'contract_seller_signature': "Seller's Signature",
        'contract_buyer_signature': "Buyer's Signature",
    },
    'he': {
        'saved_successfully': 'נשמר בהצלחה',
        'created_successfully': 'נוצר בהצלחה',
        'updated_successfully': 'עודכן בהצלחה',
        'deleted_successfully': 'נמחק בהצלחה',
        'items_deleted_successfully': '{count} פריטים נמחקו בהצלחה',
        'error_loading_data': 'שגיאה בטעינת הנתונים',
        'error_saving': 'שגיאה בשמירת הנתונים',
        'error_deleting': 'שגיאה במחיקה',
        'error_deleting_provider': 'שגיאה במחיקת הספק. ייתכן שחלק מהרשומות הקשורות לא נמחקו.',
        'not_found': 'הרשומה לא נמצאה',
        'invalid_request': 'בקשה לא תקינה',
        'validation_failed': 'נא לבדוק את השדות בטופס',
        'unauthorized': 'אין הרשאה לבצע פעולה זו',
        'identity_number_exists': 'קיימת כבר רשומה עם מספר זהות זה',
        'code_exists': 'קיימת כבר רשומה עם קוד זה',
        'bill_number_exists': 'קיימת כבר חשבונית עם מספר זה',
        'name_exists': 'קיימת כבר רשומה עם שם זה',
        'email_exists': 'קיים כבר משתמש עם אימייל זה',
        'password_too_short': 'הסיסמה חייבת להכיל לפחות 6 תווים',
        'email_password_required': 'נדרשים אימייל וסיסמה',
        'invalid_credentials': 'אימייל או סיסמה שגויים',
        'account_inactive': 'החשבון אינו פעיל',
        'logged_out': 'התנתקת בהצלחה',
        'login_successful': 'התחברת בהצלחה',
        'user_created': 'המשתמש נוצר בהצלחה',
        'user_deleted': 'המשתמש נמחק בהצלחה',
        'invitation_sent': 'ההזמנה נשלחה בהצלחה',
        'invalid_action': 'פעולה לא תקינה',
        'booking_service_accepted': 'השירות אושר בהצלחה',
        'booking_service_rejected': 'השירות נדחה',
        'notifications_sent': 'נשלחו {sent} מתוך {total} הודעות',
        'booking_confirmed': 'ההזמנה אושרה בהצלחה',
        'payout_created': 'התשלום נרשם בהצלחה',
        'payment_already_exists': 'כבר קיים תשלום עבור רשומה זו',
        'tax_invoice_exists': 'כבר קיימת חשבונית מס להזמנה זו',
        'amount_must_be_positive': 'הסכום חייב להיות גדול מאפס',
        'invalid_amount': 'סכום לא תקין',
        'invalid_payment_type': 'אמצעי תשלום לא תקין',
        'invalid_deal_type': 'סוג עסקה לא תקין',
        'invalid_service_type': 'סוג שירות לא תקין',
        'invalid_status': 'סטטוס לא תקין',
        'booking_not_found': 'ההזמנה לא נמצאה',
        'bill_created': 'החשבונית נוצרה בהצלחה',
        'deal_created': 'העסקה נוצרה בהצלחה',
        'trip_plan_created': 'תוכנית הטיול נוצרה בהצלחה',
        'booking_created': 'ההזמנה נוצרה בהצלחה',
        'invitation_accepted': 'החשבון שלך פעיל כעת',
        'invalid_invitation': 'קישור ההזמנה אינו תקף',
        'invitation_expired': 'תוקף קישור ההזמנה פג',
        'picture_uploaded': 'התמונה הועלתה בהצלחה',
        'file_type_not_allowed': 'סוג הקובץ אינו מורשה',
        'file_too_large': 'הקובץ גדול מדי',
        'document_info': 'פרטי המסמך',
        'customer_details': 'פרטי הלקוח',
        'deal_details': 'פרטי העסקה',
        'payment_details': 'פרטי התשלום',
        'financial_summary': 'סיכום פיננסי',
        'invoice_details': 'פרטי חשבונית',
        'receipt_details': 'פרטי קבלה',
        'booking_details': 'פרטי ההזמנה',
        'services': 'שירותים',
        'bill_number': 'מספר חשבונית',
        'booking_reference': 'מספר הזמנה',
        'trip_date': 'תאריך הטיול',
        'destination': 'יעד',
        'school': 'בית ספר',
        'date': 'תאריך',
        'status': 'סטטוס',
        'type': 'סוג',
        'description': 'תיאור',
        'customer_name': 'שם הלקוח',
        'customer_id': 'ת.ז',
        'phone': 'טלפון',
        'deal_title': 'כותרת העסקה',
        'deal_type': 'סוג העסקה',
        'vehicle': 'רכב',
        'amount': 'סכום',
        'quantity': 'כמות',
        'days': 'ימים',
        'unit_price': 'מחיר יחידה',
        'subtotal': 'סה"כ לפני מע"מ',
        'tax': 'מע"מ',
        'total_amount': 'סה"כ כולל מע"מ',
        'payment_method': 'אמצעי תשלום',
        'paid_amount': 'שולם',
        'remaining_amount': 'יתרה לתשלום',
        'signature_line': 'חתימה: _________________',
        'not_available': 'לא זמין',
        'generated_on': 'הופק בתאריך',
        'bill_type_general': 'חשבון',
        'bill_type_receipt_only': 'קבלה',
        'bill_type_tax_invoice': 'חשבונית מס',
        'bill_type_tax_invoice_receipt': 'חשבונית מס / קבלה',
        'payment_cash': 'מזומן',
        'payment_visa': 'ויזה',
        'payment_bank_transfer': 'העברה בנקאית',
        'payment_check': "צ'ק",
        'payment_other': 'אחר',
        'activity_logs': 'יומן פעילות',
        'log_type': 'פעילות',
        'details': 'פרטים',
        'contract_title': 'הסכם מכירת רכב',
        'contract_seller': 'המוכר',
        'contract_buyer': 'הקונה',
        'contract_vehicle': 'פרטי הרכב הנמכר',
        'contract_trade_in': 'פרטי הרכב של הקונה שנמסר בתמורה',
        'contract_payment': 'תמורה',
        'contract_terms': 'תנאי העסקה',
        'contract_company': 'חברה',
        'contract_tax_number': 'ח.פ',
        'contract_address': 'כתובת',
        'contract_make': 'יצרן',
        'contract_model': 'דגם',
        'contract_year': 'שנה',
        'contract_plate': 'מספר רישוי',
        'contract_kilometers': 'קילומטראז',
        'contract_estimated_value': 'שווי מוערך',
        'contract_term_liens': 'במידה והרכב נמצא תחת שעבוד או עיקול – המוכר מתחייב להסירו לפני העברת הבעלות.',
        'contract_term_as_is': 'הרכב נמכר במצבו הנוכחי ("כמות שהוא").',
        'contract_term_inspected': 'הקונה מצהיר כי בדק את הרכב, נסע בו, ואין לו טענות באשר למצבו המכני או החזותי.',
        'contract_term_transfer': 'המוכר מתחייב להעביר את בעלות הרכב תוך {days} ימי עסקים.',
        'contract_term_binding': 'הצדדים מודעים כי הסכם זה מחייב מבחינה משפטית.',
        'contract_seller_signature': 'חתימת המוכר',
        'contract_buyer_signature': 'חתימת הקונה',
    },
    'ar': {
        'saved_successfully': 'تم الحفظ بنجاح',
        'created_successfully': 'تم الإنشاء بنجاح',
        'updated_successfully': 'تم التحديث بنجاح',
        'deleted_successfully': 'تم الحذف بنجاح',
        'items_deleted_successfully': 'تم حذف {count} عناصر بنجاح',
        'error_loading_data': 'خطأ في تحميل البيانات',
        'error_saving': 'خطأ في حفظ البيانات',
        'error_deleting': 'خطأ في الحذف',
        'error_deleting_provider': 'خطأ في حذف المزود. قد لا تكون بعض السجلات المرتبطة قد حذفت.',
        'not_found': 'السجل غير موجود',
        'invalid_request': 'طلب غير صالح',
        'validation_failed': 'يرجى التحقق من حقول النموذج',
        'unauthorized': 'غير مسموح لك بتنفيذ هذا الإجراء',
        'identity_number_exists': 'يوجد سجل برقم الهوية هذا بالفعل',
        'code_exists': 'يوجد سجل بهذا الرمز بالفعل',
        'bill_number_exists': 'توجد فاتورة بهذا الرقم بالفعل',
        'name_exists': 'يوجد سجل بهذا الاسم بالفعل',
        'email_exists': 'يوجد مستخدم بهذا البريد الإلكتروني بالفعل',
        'password_too_short': 'يجب أن تتكون كلمة المرور من 6 أحرف على الأقل',
        'email_password_required': 'البريد الإلكتروني وكلمة المرور مطلوبان',
        'invalid_credentials': 'البريد الإلكتروني أو كلمة المرور غير صحيحة',
        'account_inactive': 'الحساب غير نشط',
        'logged_out': 'تم تسجيل الخروج بنجاح',
        'login_successful': 'تم تسجيل الدخول بنجاح',
        'user_created': 'تم إنشاء المستخدم بنجاح',
        'user_deleted': 'تم حذف المستخدم بنجاح',
        'invitation_sent': 'تم إرسال الدعوة بنجاح',
        'invalid_action': 'إجراء غير صالح',
        'booking_service_accepted': 'تم قبول الخدمة بنجاح',
        'booking_service_rejected': 'تم رفض الخدمة',
        'notifications_sent': 'تم إرسال {sent} من {total} إشعارات',
        'booking_confirmed': 'تم تأكيد الحجز بنجاح',
        'payout_created': 'تم تسجيل الدفعة بنجاح',
        'payment_already_exists': 'توجد دفعة لهذا السجل بالفعل',
        'tax_invoice_exists': 'توجد فاتورة ضريبية لهذا الحجز بالفعل',
        'amount_must_be_positive': 'يجب أن يكون المبلغ أكبر من صفر',
        'invalid_amount': 'مبلغ غير صالح',
        'invalid_payment_type': 'طريقة دفع غير صالحة',
        'invalid_deal_type': 'نوع صفقة غير صالح',
        'invalid_service_type': 'نوع خدمة غير صالح',
        'invalid_status': 'حالة غير صالحة',
        'booking_not_found': 'الحجز غير موجود',
        'bill_created': 'تم إنشاء الفاتورة بنجاح',
        'deal_created': 'تم إنشاء الصفقة بنجاح',
        'trip_plan_created': 'تم إنشاء خطة الرحلة بنجاح',
        'booking_created': 'تم إنشاء الحجز بنجاح',
        'invitation_accepted': 'حسابك نشط الآن',
        'invalid_invitation': 'رابط الدعوة غير صالح',
        'invitation_expired': 'انتهت صلاحية رابط الدعوة',
        'picture_uploaded': 'تم رفع الصورة بنجاح',
        'file_type_not_allowed': 'نوع الملف غير مسموح',
        'file_too_large': 'الملف كبير جداً',
        'document_info': 'معلومات المستند',
        'customer_details': 'تفاصيل العميل',
        'deal_details': 'تفاصيل الصفقة',
        'payment_details': 'تفاصيل الدفع',
        'financial_summary': 'ملخص مالي',
        'invoice_details': 'تفاصيل الفاتورة',
        'receipt_details': 'تفاصيل الإيصال',
        'booking_details': 'تفاصيل الحجز',
        'services': 'الخدمات',
        'bill_number': 'رقم الفاتورة',
        'booking_reference': 'رقم الحجز',
        'trip_date': 'تاريخ الرحلة',
        'destination': 'الوجهة',
        'school': 'المدرسة',
        'date': 'التاريخ',
        'status': 'الحالة',
        'type': 'النوع',
        'description': 'الوصف',
        'customer_name': 'اسم العميل',
        'customer_id': 'رقم الهوية',
        'phone': 'رقم الهاتف',
        'deal_title': 'عنوان الصفقة',
        'deal_type': 'نوع الصفقة',
        'vehicle': 'المركبة',
        'amount': 'المبلغ',
        'quantity': 'الكمية',
        'days': 'الأيام',
        'unit_price': 'سعر الوحدة',
        'subtotal': 'السعر قبل الضريبة',
        'tax': 'الضريبة',
        'total_amount': 'الاجمالي شامل الضريبة',
        'payment_method': 'طريقة الدفع',
        'paid_amount': 'المبلغ المدفوع',
        'remaining_amount': 'المبلغ المتبقي',
        'signature_line': 'التوقيع: _________________',
        'not_available': 'غير متوفر',
        'generated_on': 'تم الإنشاء في',
        'bill_type_general': 'فاتورة',
        'bill_type_receipt_only': 'إيصال',
        'bill_type_tax_invoice': 'فاتورة ضريبية',
        'bill_type_tax_invoice_receipt': 'فاتورة ضريبية / إيصال',
        'payment_cash': 'نقداً',
        'payment_visa': 'فيزا',
        'payment_bank_transfer': 'تحويل بنكي',
        'payment_check': 'شيك',
        'payment_other': 'أخرى',
        'activity_logs': 'سجل النشاطات',
        'log_type': 'النشاط',
        'details': 'التفاصيل',
        'contract_title': 'اتفاقية بيع مركبة',
        'contract_seller': 'البائع',
        'contract_buyer': 'المشتري',
        'contract_vehicle': 'تفاصيل المركبة المباعة',
        'contract_trade_in': 'تفاصيل مركبة المشتري التي تم تسليمها كجزء من الصفقة',
        'contract_payment': 'المقابل المالي',
        'contract_terms': 'شروط الاتفاق',
        'contract_company': 'الشركة',
        'contract_tax_number': 'الرقم الضريبي',
        'contract_address': 'العنوان',
        'contract_make': 'الشركة المصنعة',
        'contract_model': 'الطراز',
        'contract_year': 'سنة الصنع',
        'contract_plate': 'رقم اللوحة',
        'contract_kilometers': 'عدد الكيلومترات',
        'contract_estimated_value': 'القيمة التقديرية',
        'contract_term_liens': 'في حال كانت المركبة محجوزة أو مرهونة – يلتزم البائع برفع الحجز أو الرهن قبل نقل الملكية.',
        'contract_term_as_is': 'تُباع المركبة بحالتها الراهنة ("كما هي").',
        'contract_term_inspected': 'يقرّ المشتري بأنه فحص المركبة وقادها، ولا يملك أي اعتراض على حالتها الفنية أو الشكلية.',
        'contract_term_transfer': 'يلتزم البائع بنقل ملكية المركبة خلال {days} أيام عمل.',
        'contract_term_binding': 'يدرك الطرفان أن هذه الاتفاقية ملزمة قانونياً.',
        'contract_seller_signature': 'توقيع البائع',
        'contract_buyer_signature': 'توقيع المشتري',
    },
}


def normalize_language(lang: Optional[str]) -> str:
    if lang:
        lang = lang.split(',')[0].split('-')[0].strip().lower()
        if lang in SUPPORTED_LANGUAGES:
            return lang
    return FALLBACK_LANGUAGE


def get_request_language() -> str:
    """Language from ?lang=, then Accept-Language, then DEFAULT_LANGUAGE"""
    if has_request_context():
        requested = request.args.get('lang') or request.headers.get('Accept-Language')
        if requested:
            lang = requested.split(',')[0].split('-')[0].strip().lower()
            if lang in SUPPORTED_LANGUAGES:
                return lang
        return normalize_language(current_app.config.get('DEFAULT_LANGUAGE', 'he'))
    return 'he'


def translate(key: str, lang: Optional[str] = None, **kwargs) -> str:
    lang = normalize_language(lang) if lang else get_request_language()
    text = MESSAGES.get(lang, {}).get(key) or MESSAGES[FALLBACK_LANGUAGE].get(key) or key
    if kwargs:
        try:
            text = text.format(**kwargs)
        except (KeyError, IndexError):
            pass
    return text


def is_rtl(lang: Optional[str]) -> bool:
    return normalize_language(lang) in RTL_LANGUAGES


def toast(key: str, success: bool = True, lang: Optional[str] = None, **kwargs) -> Dict[str, Any]:
    """Message payload with its alert variant ('success' or 'danger')"""
    return {
        'success': success,
        'type': 'success' if success else 'danger',
        'message': translate(key, lang, **kwargs),
    }
