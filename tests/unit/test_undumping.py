"""
Tests for loading stored primitives (codec/undumping.py), including
dump/undump round trips.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from boto3.dynamodb.types import Binary

from dynamodb_odm.codec import (
    dump_field,
    register_type_adapter,
    undump_attributes,
    undump_field,
    unregister_type_adapter,
)
from dynamodb_odm.exceptions import ArgumentError
from dynamodb_odm.models import Field


def named(field: Field, name: str = 'attr') -> Field:
    field.name = name
    return field


class Temperature:
    def __init__(self, degrees):
        self.degrees = degrees

    def dynamodb_dump(self):
        return self.degrees

    @classmethod
    def dynamodb_load(cls, value):
        return cls(Decimal(value))


class Celsius:
    def __init__(self, degrees):
        self.degrees = degrees


class CelsiusAdapter:
    def dump(self, value):
        return value.degrees

    def load(self, value):
        return Celsius(Decimal(value))


class TestScalarUndumping:
    """Test loading scalar values."""

    def test_absent_is_none(self):
        """Test that absent values load as None rather than defaults."""
        field = named(Field('string', default='fallback'))

        assert undump_field(None, field) is None

    def test_integer_from_decimal(self):
        """Test that boto3 Decimals load as int for integer fields."""
        assert undump_field(Decimal('42'), named(Field('integer'))) == 42

    def test_boolean_accepts_both_representations(self):
        """Test native and 't'/'f' booleans load regardless of settings."""
        field = named(Field('boolean'))

        assert undump_field(True, field) is True
        assert undump_field('t', field) is True
        assert undump_field('f', field) is False

    def test_boolean_rejects_other_values(self):
        """Test that other stored values raise ArgumentError."""
        with pytest.raises(ArgumentError):
            undump_field('yes', named(Field('boolean')))

    def test_binary(self):
        """Test binary loads from base64 text or boto3 Binary."""
        field = named(Field('binary'))

        assert undump_field('AAE=', field) == b'\x00\x01'
        assert undump_field(Binary(b'\x00\x01'), field) == b'\x00\x01'


class TestDateTimeUndumping:
    """Test loading datetimes and dates."""

    def test_datetime_from_epoch(self):
        """Test epoch seconds load as aware datetimes."""
        result = undump_field(Decimal('10.5'), named(Field('datetime')))

        assert result == datetime(1970, 1, 1, 0, 0, 10, 500000, tzinfo=timezone.utc)

    def test_datetime_from_string_in_application_zone(self, odm_config):
        """Test ISO strings are converted into the application zone."""
        config = odm_config.replace(application_timezone='Europe/Berlin')

        result = undump_field('2024-01-15T10:00:00+00:00', named(Field('datetime')), config)

        assert result.hour == 11
        assert result == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)

    def test_date(self):
        """Test dates load from epoch days or ISO strings."""
        field = named(Field('date'))

        assert undump_field(Decimal('10'), field) == date(1970, 1, 11)
        assert undump_field('1970-01-11', field) == date(1970, 1, 11)


class TestCollectionUndumping:
    """Test loading sets, arrays and maps."""

    def test_set_with_element_type(self):
        """Test set elements load through the element type."""
        field = named(Field('set', of='integer'))

        assert undump_field({Decimal('1'), Decimal('2')}, field) == {1, 2}

    def test_array(self):
        """Test arrays load element by element."""
        field = named(Field('array', of='date'))

        assert undump_field([Decimal('0')], field) == [date(1970, 1, 1)]

    def test_map_keeps_decimals_by_default(self):
        """Test nested numbers stay Decimal unless configured."""
        field = named(Field('map'))

        assert undump_field({'a': Decimal('1.5')}, field) == {'a': Decimal('1.5')}

    def test_map_converts_decimals_when_configured(self, odm_config):
        """Test convert_big_decimal turns nested Decimals into floats."""
        config = odm_config.replace(convert_big_decimal=True)

        result = undump_field({'a': [Decimal('1.5')]}, named(Field('map')), config)

        assert result == {'a': [1.5]}
        assert isinstance(result['a'][0], float)


class TestRoundTrip:
    """Test that dumping then undumping returns the original value."""

    @pytest.mark.parametrize("field,value", [
        (Field('datetime'), datetime(2024, 5, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)),
        (Field('datetime', store_as_string=True), datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)),
        (Field('date'), date(2023, 12, 31)),
        (Field('boolean', store_as_native_boolean=False), False),
        (Field('set', of='string'), {'red', 'green'}),
        (Field('serialized'), {'nested': [1, 'two']}),
        (Field('binary'), b'\xffpayload'),
    ])
    def test_round_trip(self, field, value):
        """Test undump(dump(value)) == value."""
        field.name = 'attr'

        assert undump_field(dump_field(value, field), field) == value

    def test_custom_type_round_trip(self):
        """Test custom types go through their dump and load hooks."""
        field = named(Field(Temperature, field_type='number'))

        loaded = undump_field(dump_field(Temperature(21.5), field), field)

        assert isinstance(loaded, Temperature)
        assert loaded.degrees == Decimal('21.5')

    def test_adapter_round_trip(self):
        """Test a value dumped through an adapter loads back through it."""
        field = named(Field(Celsius, field_type='number'))
        register_type_adapter(Celsius, CelsiusAdapter())
        try:
            stored = dump_field(Celsius(18), field)
            loaded = undump_field(stored, field)
        finally:
            unregister_type_adapter(Celsius)

        assert stored == Decimal('18')
        assert isinstance(loaded, Celsius)
        assert loaded.degrees == Decimal('18')

    def test_adapter_lookup_uses_declared_type(self):
        """Test both directions ignore adapters registered only for the value's runtime type."""

        class Kelvin(Celsius):
            pass

        field = named(Field(Celsius, field_type='number'))
        register_type_adapter(Kelvin, CelsiusAdapter())
        try:
            with pytest.raises(ArgumentError):
                dump_field(Kelvin(300), field)
            with pytest.raises(ArgumentError):
                undump_field(Decimal('300'), field)
        finally:
            unregister_type_adapter(Kelvin)

    def test_undump_attributes_drops_undeclared(self):
        """Test that attributes missing from the schema are ignored on load."""
        fields = {'count': named(Field('integer'), 'count')}

        assert undump_attributes({'count': Decimal('3'), 'legacy': 'x'}, fields) == {'count': 3}
