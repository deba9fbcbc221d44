"""
Unit tests for booking price calculation
"""

import pytest

from utils.pricing import (ServiceSelection, SubService, calculate_booking_price, calculate_service_line_cost,
                           get_service_rate, validate_pricing_inputs, has_sub_services, get_rate_type_label)


def selection(**overrides):
    data = dict(id=1, name='Guide', type='guides', quantity=1, days=1, unit_price=500.0, rate_type='daily')
    data.update(overrides)
    return ServiceSelection(**data)


class TestCalculateBookingPrice:

    def test_destination_base_and_services(self):
        services = [
            selection(quantity=2, days=3, unit_price=500.0),
            selection(id=2, name='Buses', type='travel_companies', unit_price=1200.0),
        ]
        result = calculate_booking_price({'student': 50, 'crew': 20}, 100, 10, services)

        assert result.students_cost == 5000
        assert result.crew_cost == 200
        assert result.destination_base == 5200
        assert result.services_total == 3000 + 1200
        assert result.total_price == 9400
        assert [cost.total_cost for cost in result.services_costs] == [3000, 1200]

    def test_sub_services_are_added_once_per_line(self):
        services = [selection(type='external_entertainment_companies', quantity=2, unit_price=100.0,
                              sub_services=[SubService(id='a', label='Rope park', price=250),
                                            SubService(id='b', label='Kayak', price=150)])]
        result = calculate_booking_price(None, 0, 0, services)

        cost = result.services_costs[0]
        assert cost.base_service_cost == 200
        assert cost.sub_services_cost == 400
        assert result.total_price == 600

    def test_missing_destination_pricing_costs_nothing(self):
        result = calculate_booking_price(None, 120, 8, [])
        assert result.destination_base == 0
        assert result.total_price == 0

    def test_to_dict_has_breakdown(self):
        data = calculate_booking_price({'student': 10, 'crew': 0}, 3, 0, [selection()]).to_dict()
        assert data['total_price'] == 530
        assert data['breakdown']['students_cost'] == 30
        assert data['breakdown']['services_costs'][0]['service_type'] == 'guides'


class TestLineCost:

    def test_zero_days_counts_as_one(self):
        assert calculate_service_line_cost(100, 2, 0) == 200

    def test_line_cost_with_sub_services(self):
        assert calculate_service_line_cost(100, 1, 2, [SubService(id='x', label='Extra', price=50)]) == 250


class TestServiceRates:

    @pytest.mark.parametrize('rate_type,expected', [
        ('hourly', 80),
        ('daily', 500),
        ('regional', 650),
        ('overnight', 900),
        ('unknown', 500),
    ])
    def test_rate_by_type(self, rate_type, expected):
        provider = {'hourly_rate': 80, 'daily_rate': 500, 'regional_rate': 650, 'overnight_rate': 900}
        assert get_service_rate(provider, rate_type) == expected

    def test_fixed_rate_uses_price_then_pricing_data(self):
        assert get_service_rate({'price': 300}, 'fixed') == 300
        assert get_service_rate({'price': None, 'pricing_data': {'default_price': 120}}, 'fixed') == 120
        assert get_service_rate({}, 'fixed') == 0


class TestValidation:

    def test_valid_inputs(self):
        valid, errors = validate_pricing_inputs(10, 2, [selection()])
        assert valid is True
        assert errors == []

    def test_negative_counts_and_bad_lines(self):
        valid, errors = validate_pricing_inputs(-1, -2, [selection(quantity=0, days=0, unit_price=-5)])
        assert valid is False
        assert len(errors) == 5


class TestServiceSelection:

    def test_from_dict_accepts_service_keys(self):
        result = ServiceSelection.from_dict({'service_id': 7, 'service_type': 'paramedics', 'quantity': '2',
                                             'sub_services': [{'id': 1, 'label': 'Night', 'price': '80'}]})
        assert result.id == 7
        assert result.type == 'paramedics'
        assert result.quantity == 2
        assert result.days == 1
        assert result.rate_type == 'daily'
        assert result.sub_services[0].price == 80.0

    def test_explicit_zero_quantity_is_kept(self):
        assert ServiceSelection.from_dict({'id': 1, 'type': 'guides', 'quantity': 0}).quantity == 0

    def test_helpers(self):
        assert has_sub_services('education_programs') is True
        assert has_sub_services('guides') is False
        assert get_rate_type_label('overnight') == 'Overnight Rate'
        assert get_rate_type_label('other') == 'Daily Rate'
