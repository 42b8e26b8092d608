import datetime
import decimal

import pytest
from dataobject.converters import convert, to_binary, to_string
from dataobject.exceptions import ScalarConversionError
from dataobject.types import DbType


class TestConvert:
    """Coercion of untyped provider values to a requested kind"""

    @pytest.mark.parametrize('kind', [k for k in DbType if k not in {DbType.XML, DbType.TABLE}])
    def test_none_is_none(self, kind):
        assert convert(None, kind) is None

    def test_boolean(self):
        assert convert(1, DbType.BOOLEAN) is True
        assert convert(0, DbType.BOOLEAN) is False
        assert convert('True', DbType.BOOLEAN) is True
        assert convert(' false ', DbType.BOOLEAN) is False
        with pytest.raises(ScalarConversionError):
            convert('yes', DbType.BOOLEAN)

    def test_integers(self):
        assert convert(42, DbType.INT32) == 42
        assert convert('17', DbType.INT64) == 17
        assert convert(decimal.Decimal('3'), DbType.INT16) == 3
        assert convert(2.6, DbType.INT32) == 3
        assert convert(True, DbType.BYTE) == 1

    def test_integer_overflow(self):
        with pytest.raises(ScalarConversionError, match='outside'):
            convert(256, DbType.BYTE)
        with pytest.raises(ScalarConversionError):
            convert(-1, DbType.BYTE)
        with pytest.raises(ScalarConversionError):
            convert(2**31, DbType.INT32)
        assert convert(2**31, DbType.INT64) == 2**31

    def test_integer_from_garbage(self):
        with pytest.raises(ScalarConversionError):
            convert('abc', DbType.INT32)
        with pytest.raises(ScalarConversionError):
            convert(b'\x01', DbType.INT32)

    def test_single_rounds_to_float32(self):
        value = convert(0.1, DbType.SINGLE)
        assert value != 0.1
        assert value == pytest.approx(0.1, rel=1e-6)

    def test_double(self):
        assert convert(decimal.Decimal('1.5'), DbType.DOUBLE) == 1.5
        assert convert('2.25', DbType.DOUBLE) == 2.25

    def test_decimal(self):
        assert convert('10.50', DbType.DECIMAL) == decimal.Decimal('10.50')
        assert convert(0.1, DbType.DECIMAL) == decimal.Decimal('0.1')
        assert convert(7, DbType.DECIMAL) == decimal.Decimal(7)
        with pytest.raises(ScalarConversionError):
            convert('ten', DbType.DECIMAL)

    def test_datetime(self):
        assert convert('2024-03-01 12:30:00', DbType.DATETIME) == datetime.datetime(2024, 3, 1, 12, 30)
        assert convert(datetime.date(2024, 3, 1), DbType.DATETIME) == datetime.datetime(2024, 3, 1)
        with pytest.raises(ScalarConversionError):
            convert('not a date', DbType.DATETIME)
        with pytest.raises(ScalarConversionError):
            convert(12, DbType.DATETIME)

    def test_xml_has_no_scalar_representation(self):
        with pytest.raises(ScalarConversionError):
            convert('<a/>', DbType.XML)


class TestStrictConvert:
    """Unboxing semantics used by parameter accessors"""

    def test_exact_types_pass(self):
        assert convert(5, DbType.INT32, strict=True) == 5
        assert convert(True, DbType.BOOLEAN, strict=True) is True
        assert convert(decimal.Decimal('1.1'), DbType.DECIMAL, strict=True) == decimal.Decimal('1.1')

    def test_widening_allowed(self):
        assert convert(5, DbType.DOUBLE, strict=True) == 5.0

    def test_incompatible_types_fail(self):
        with pytest.raises(ScalarConversionError):
            convert('5', DbType.INT32, strict=True)
        with pytest.raises(ScalarConversionError):
            convert(5.0, DbType.INT32, strict=True)
        with pytest.raises(ScalarConversionError):
            convert(True, DbType.INT32, strict=True)

    def test_range_still_checked(self):
        with pytest.raises(ScalarConversionError):
            convert(2**40, DbType.INT32, strict=True)


def test_to_string_keeps_none_distinct_from_empty():
    assert to_string(None) is None
    assert to_string('') == ''
    assert to_string(12) == '12'
    assert to_string(b'abc') == 'abc'


def test_to_binary_is_a_raw_cast():
    assert to_binary(b'\x00\x01') == b'\x00\x01'
    assert to_binary(bytearray(b'xy')) == b'xy'
    assert to_binary(memoryview(b'z')) == b'z'
    assert to_binary('text') is None
    assert to_binary(None) is None


if __name__ == '__main__':
    __import__('pytest').main([__file__])
