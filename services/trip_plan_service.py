"""
Trip Plan Service

Draft trips: a school, a destination, a date and the providers picked for
it. Prices come from the provider rates and utils.pricing.
"""

from typing import Optional, Dict, Any, Tuple, List
import logging
from datetime import datetime
from models import db, TripPlan, TripPlanService as TripPlanLine, School, Destination, BOOKABLE_SERVICE_MODELS
from utils.pricing import (ServiceSelection, calculate_booking_price, get_service_rate,
                           validate_pricing_inputs, RATE_TYPES)
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

TRIP_PLAN_STATUSES = ('draft', 'submitted', 'booked', 'cancelled')


def _parse_date(value):
    if not value:
        return None
    if isinstance(value, str):
        return datetime.strptime(value[:10], '%Y-%m-%d').date()
    return value


def destination_pricing(destination: Optional[Destination]) -> Optional[Dict[str, float]]:
    if not destination:
        return None
    return {'student': destination.student_price or 0.0, 'crew': destination.crew_price or 0.0}


def resolve_service_selections(services: List[Dict[str, Any]]) -> Tuple[Optional[str], List[ServiceSelection]]:
    """
    Turn requested lines into priced selections.

    A line without unit_price is priced from the provider's rate for its
    rate type; education programs are always priced at their fixed price.

    Returns:
        tuple: (error_message: str, selections: list)
    """
    selections = []
    for data in services or []:
        try:
            selection = ServiceSelection.from_dict(data)
        except (TypeError, ValueError):
            return 'validation_failed', []

        model = BOOKABLE_SERVICE_MODELS.get(selection.type)
        if model is None:
            return 'invalid_service_type', []
        provider = db.session.get(model, selection.id)
        if not provider:
            return 'not_found', []

        if selection.type == 'education_programs':
            selection.rate_type = 'fixed'
        elif selection.rate_type not in RATE_TYPES:
            return 'validation_failed', []
        if data.get('unit_price') in (None, ''):
            selection.unit_price = float(get_service_rate(provider, selection.rate_type))
        selection.id = provider.id
        selection.name = selection.name or provider.name
        selections.append(selection)
    return None, selections


class TripPlanService:
    """Service class for trip plans"""

    def _price(self, destination, students: int, crew: int, selections: List[ServiceSelection]):
        valid, errors = validate_pricing_inputs(students, crew, selections)
        if not valid:
            logger.warning(f"Invalid trip pricing input: {'; '.join(errors)}")
            return None
        return calculate_booking_price(destination_pricing(destination), students, crew, selections)

    def _apply(self, plan: TripPlan, data: Dict[str, Any]) -> Optional[str]:
        if 'school_id' in data:
            if data['school_id'] and not db.session.get(School, data['school_id']):
                return 'not_found'
            plan.school_id = data['school_id'] or None
        if 'destination_id' in data:
            if data['destination_id'] and not db.session.get(Destination, data['destination_id']):
                return 'not_found'
            plan.destination_id = data['destination_id'] or None
        if data.get('status'):
            if data['status'] not in TRIP_PLAN_STATUSES:
                return 'validation_failed'
            plan.status = data['status']
        for field in ('name', 'notes'):
            if field in data:
                setattr(plan, field, data[field] or None)
        for field in ('students_count', 'crew_count'):
            if field in data:
                setattr(plan, field, int(data[field] or 0))
        if 'trip_date' in data:
            plan.trip_date = _parse_date(data['trip_date'])
        return None

    def _replace_lines(self, plan: TripPlan, selections: List[ServiceSelection], calculation) -> None:
        plan.services.clear()
        for selection, cost in zip(selections, calculation.services_costs):
            plan.services.append(TripPlanLine(
                service_type=selection.type,
                service_id=selection.id,
                quantity=selection.quantity,
                days=selection.days,
                rate_type=selection.rate_type,
                unit_price=selection.unit_price,
                sub_services=[vars(sub) for sub in selection.sub_services],
                line_total=cost.total_cost,
            ))

    @TransactionHelper.with_transaction
    def create_trip_plan(self, data: Dict[str, Any],
                         created_by: Optional[int] = None) -> Tuple[bool, Optional[str], Optional[TripPlan]]:
        """
        Create a trip plan and price it.

        Returns:
            tuple: (success: bool, error_message: str, plan: TripPlan)
        """
        try:
            plan = TripPlan(created_by=created_by, status='draft')
            error = self._apply(plan, data)
            if error:
                return False, error, None
            error, selections = resolve_service_selections(data.get('services') or [])
            if error:
                return False, error, None
        except (TypeError, ValueError) as e:
            logger.error(f"Invalid trip plan data: {str(e)}")
            return False, 'validation_failed', None

        destination = db.session.get(Destination, plan.destination_id) if plan.destination_id else None
        calculation = self._price(destination, plan.students_count or 0, plan.crew_count or 0, selections)
        if calculation is None:
            return False, 'validation_failed', None

        plan.total_price = calculation.total_price
        self._replace_lines(plan, selections, calculation)
        db.session.add(plan)
        db.session.flush()
        logger.info(f"Trip plan {plan.id} created, total {plan.total_price}")
        return True, None, plan

    @TransactionHelper.with_transaction
    def update_trip_plan(self, plan_id: int, data: Dict[str, Any]) -> Tuple[bool, Optional[str], Optional[TripPlan]]:
        """Update a trip plan; the price is recalculated from the current lines"""
        plan = db.session.get(TripPlan, plan_id)
        if not plan:
            return False, 'not_found', None
        try:
            error = self._apply(plan, data)
            if error:
                return False, error, None
            if 'services' in data:
                error, selections = resolve_service_selections(data['services'] or [])
                if error:
                    return False, error, None
            else:
                selections = [ServiceSelection.from_dict({
                    'id': line.service_id, 'type': line.service_type, 'quantity': line.quantity,
                    'days': line.days, 'unit_price': line.unit_price, 'rate_type': line.rate_type,
                    'sub_services': line.sub_services,
                }) for line in plan.services]
        except (TypeError, ValueError) as e:
            logger.error(f"Invalid trip plan data: {str(e)}")
            return False, 'validation_failed', None

        destination = db.session.get(Destination, plan.destination_id) if plan.destination_id else None
        calculation = self._price(destination, plan.students_count or 0, plan.crew_count or 0, selections)
        if calculation is None:
            return False, 'validation_failed', None
        plan.total_price = calculation.total_price
        if 'services' in data:
            self._replace_lines(plan, selections, calculation)
        return True, None, plan

    @TransactionHelper.with_transaction
    def delete_trip_plan(self, plan_id: int) -> Tuple[bool, Optional[str]]:
        plan = db.session.get(TripPlan, plan_id)
        if not plan:
            return False, 'not_found'
        db.session.delete(plan)
        return True, None

    def list_trip_plans(self) -> List[Dict[str, Any]]:
        plans = TripPlan.query.order_by(TripPlan.created_at.desc(), TripPlan.id.desc()).all()
        return [plan.to_dict() for plan in plans]
