"""
Booking price calculation

Price of a trip = destination base (per student + per crew member) plus one
line per selected service: unit price x quantity x days, plus the fixed
prices of any chosen sub-services (entertainment and education programs).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


SERVICE_TYPES = (
    'guides',
    'paramedics',
    'security_companies',
    'external_entertainment_companies',
    'travel_companies',
    'education_programs',
)

RATE_TYPES = ('hourly', 'daily', 'regional', 'overnight', 'fixed')

RATE_TYPE_LABELS = {
    'hourly': 'Hourly Rate',
    'daily': 'Daily Rate',
    'regional': 'Regional Rate',
    'overnight': 'Overnight Rate',
    'fixed': 'Fixed Price',
}


@dataclass
class SubService:
    id: str
    label: str
    price: float = 0


@dataclass
class ServiceSelection:
    """One provider picked for a trip"""
    id: Any
    name: str
    type: str
    quantity: int = 1
    days: int = 1
    unit_price: float = 0
    rate_type: str = 'daily'
    sub_services: List[SubService] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServiceSelection':
        subs = [
            SubService(id=str(sub.get('id', '')), label=sub.get('label', ''), price=float(sub.get('price') or 0))
            for sub in (data.get('sub_services') or [])
        ]
        return cls(
            id=data.get('id') or data.get('service_id'),
            name=data.get('name', ''),
            type=data.get('type') or data.get('service_type', ''),
            quantity=int(data.get('quantity') if data.get('quantity') is not None else 1),
            days=int(data.get('days') if data.get('days') is not None else 1),
            unit_price=float(data.get('unit_price') or 0),
            rate_type=data.get('rate_type') or 'daily',
            sub_services=subs,
        )


@dataclass
class ServiceCost:
    service_id: Any
    service_name: str
    service_type: str
    quantity: int
    days: int
    unit_price: float
    rate_type: str
    base_service_cost: float
    sub_services_cost: float
    total_cost: float


@dataclass
class BookingPriceCalculation:
    destination_base: float
    services_total: float
    total_price: float
    students_cost: float
    crew_cost: float
    services_costs: List[ServiceCost]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'destination_base': self.destination_base,
            'services_total': self.services_total,
            'total_price': self.total_price,
            'breakdown': {
                'students_cost': self.students_cost,
                'crew_cost': self.crew_cost,
                'services_costs': [vars(cost) for cost in self.services_costs],
            }
        }


def _sub_services_cost(sub_services: Optional[List[SubService]]) -> float:
    return sum((sub.price or 0) for sub in (sub_services or []))


def calculate_service_line_cost(unit_price: float, quantity: int, days: int,
                                sub_services: Optional[List[SubService]] = None) -> float:
    """unit_price x quantity x days (days defaults to 1) plus sub-service prices"""
    base = (unit_price or 0) * (quantity or 0) * (days or 1)
    return base + _sub_services_cost(sub_services)


def calculate_booking_price(destination_pricing: Optional[Dict[str, float]], number_of_students: int,
                            number_of_crew: int, selected_services: List[ServiceSelection]) -> BookingPriceCalculation:
    """
    Calculate the total price for a booking.

    Args:
        destination_pricing: {'student': price per student, 'crew': price per crew member} or None
        number_of_students: Total number of students
        number_of_crew: Total number of crew members
        selected_services: Selected services with their rates, quantities and days

    Returns:
        BookingPriceCalculation with the per-line breakdown
    """
    if destination_pricing:
        students_cost = (destination_pricing.get('student') or 0) * (number_of_students or 0)
        crew_cost = (destination_pricing.get('crew') or 0) * (number_of_crew or 0)
    else:
        students_cost = 0
        crew_cost = 0
    destination_base = students_cost + crew_cost

    services_costs = []
    for service in selected_services:
        base_cost = (service.unit_price or 0) * (service.quantity or 0) * (service.days or 1)
        subs_cost = _sub_services_cost(service.sub_services)
        services_costs.append(ServiceCost(
            service_id=service.id,
            service_name=service.name,
            service_type=service.type,
            quantity=service.quantity,
            days=service.days,
            unit_price=service.unit_price,
            rate_type=service.rate_type,
            base_service_cost=base_cost,
            sub_services_cost=subs_cost,
            total_cost=base_cost + subs_cost,
        ))

    services_total = sum(cost.total_cost for cost in services_costs)

    return BookingPriceCalculation(
        destination_base=destination_base,
        services_total=services_total,
        total_price=destination_base + services_total,
        students_cost=students_cost,
        crew_cost=crew_cost,
        services_costs=services_costs,
    )


def _read(service: Any, name: str):
    if isinstance(service, dict):
        return service.get(name)
    return getattr(service, name, None)


def get_service_rate(service: Any, rate_type: str) -> float:
    """Rate of a provider row (dict or model) for the given rate type; unknown types use the daily rate"""
    if rate_type == 'hourly':
        return _read(service, 'hourly_rate') or 0
    if rate_type == 'daily':
        return _read(service, 'daily_rate') or 0
    if rate_type == 'regional':
        return _read(service, 'regional_rate') or 0
    if rate_type == 'overnight':
        return _read(service, 'overnight_rate') or 0
    if rate_type == 'fixed':
        pricing_data = _read(service, 'pricing_data') or {}
        return _read(service, 'price') or pricing_data.get('default_price') or 0
    return _read(service, 'daily_rate') or 0


def validate_pricing_inputs(number_of_students: int, number_of_crew: int,
                            selected_services: List[ServiceSelection]) -> Tuple[bool, List[str]]:
    errors = []

    if number_of_students < 0:
        errors.append('Number of students cannot be negative')
    if number_of_crew < 0:
        errors.append('Number of crew cannot be negative')

    for service in selected_services:
        if service.quantity <= 0:
            errors.append(f'Service "{service.name}" must have quantity greater than 0')
        if service.days <= 0:
            errors.append(f'Service "{service.name}" must have days greater than 0')
        if service.unit_price < 0:
            errors.append(f'Service "{service.name}" has invalid unit price')

    return len(errors) == 0, errors


def has_sub_services(service_type: str) -> bool:
    return service_type in ('external_entertainment_companies', 'education_programs')


def get_rate_type_label(rate_type: str) -> str:
    return RATE_TYPE_LABELS.get(rate_type, 'Daily Rate')
