"""
Service Layer Architecture

This package contains the business logic behind the route handlers. Services provide:

1. **Transaction Management**: Atomic operations with proper rollback
2. **Business Logic Separation**: Route handlers only parse input and shape responses
3. **Testability**: Business logic is unit tested without HTTP
4. **Error Handling**: Failures are logged and returned as message keys

Services Architecture:
- **BalanceService**: Customer balance ledger driven by deals and receipts
- **ProviderBalanceService**: Service provider and school balances
- **BillService**: Bills, bill payments, booking tax invoices
- **DealService**: Car deals and their balance effects
- **ProviderService**: Guides, paramedics, security, travel and entertainment companies
- **PayoutService**: Amounts owed and paid to service providers
- **BookingService**: Bookings and the service acceptance workflow
- **TripPlanService**: Draft trips priced from provider rates
- **UserService**: Login account administration
- **NotificationService**: Outbound email
- **ActivityService**: Business activity log
- **ReportingService**: Dashboard statistics and provider revenue
- **PdfService**: Bills, contracts, bookings and logs as PDF
- **FileService**: File storage
"""

from .transaction_helper import TransactionHelper
from .activity_service import ActivityService
from .balance_service import BalanceService
from .provider_balance_service import ProviderBalanceService, ServiceProviderBalance
from .file_service import FileService
from .notification_service import NotificationService
from .user_service import UserService
from .bill_service import BillService
from .deal_service import DealService
from .payout_service import PayoutService
from .provider_service import ProviderService
from .trip_plan_service import TripPlanService
from .booking_service import BookingService
from .reporting_service import ReportingService
from .pdf_service import PdfService

__all__ = [
    'TransactionHelper',
    'ActivityService',
    'BalanceService',
    'ProviderBalanceService',
    'ServiceProviderBalance',
    'FileService',
    'NotificationService',
    'UserService',
    'BillService',
    'DealService',
    'PayoutService',
    'ProviderService',
    'TripPlanService',
    'BookingService',
    'ReportingService',
    'PdfService',
]
