import math

import pytest
from sqlite_typed.coercion import coerce, coerce_row, null_value
from sqlite_typed.coercion import parse_int_prefix, parse_real_prefix
from sqlite_typed.coercion import render_real, to_bytes, to_double
from sqlite_typed.coercion import to_int32, to_int64, to_text
from sqlite_typed.types import INT32_MIN, INT64_MAX, INT64_MIN, Kind
from sqlite_typed.types import Nullable, Utf8


class TestNull:

    @pytest.mark.parametrize(('kind', 'expected'), [
        (Kind.INT32, 0),
        (Kind.INT64, 0),
        (Kind.DOUBLE, 0.0),
        (Kind.TEXT, ''),
        (Kind.BYTES, b''),
    ])
    def test_null_decodes_to_zero_value(self, kind, expected):
        assert coerce(None, kind) == expected
        assert null_value(kind) == expected

    @pytest.mark.parametrize('kind', list(Kind))
    def test_nullable_null_is_none(self, kind):
        assert coerce(None, Nullable(kind)) is None
        assert null_value(Nullable(kind)) is None

    def test_nullable_non_null_uses_inner_kind(self):
        assert coerce(5, Nullable(Kind.TEXT)) == '5'
        assert coerce(Utf8(b'7x'), Nullable(Kind.INT64)) == 7


class TestInteger:

    def test_integer_source(self):
        assert to_int64(42) == 42
        assert to_double(42) == 42.0
        assert to_text(-42) == '-42'

    def test_integer_to_bytes_is_text_rendering(self):
        assert to_bytes(42) == b'42'
        assert to_bytes(-7) == b'-7'

    def test_int32_wraps_to_low_32_bits(self):
        assert to_int32(2**32 + 5) == 5
        assert to_int32(2**31) == INT32_MIN
        assert to_int32(-1) == -1
        assert to_int32(Utf8(b'4294967297')) == 1

    @pytest.mark.parametrize('n', [0, 7, -7, 1000000, INT64_MAX, INT64_MIN])
    def test_decimal_rendering(self, n):
        assert to_text(n) == str(n)


class TestFloat:

    def test_truncates_toward_zero(self):
        assert to_int64(3.9) == 3
        assert to_int64(-3.9) == -3

    def test_saturates_at_int64_bounds(self):
        assert to_int64(1e300) == INT64_MAX
        assert to_int64(-1e300) == INT64_MIN
        assert to_int64(float('inf')) == INT64_MAX

    def test_nan_is_zero(self):
        assert to_int64(float('nan')) == 0

    def test_float_to_text(self):
        assert to_text(69.5) == '69.5'
        assert to_text(100.0) == '100.0'
        assert to_text(1e20) == '1.0e+20'

    def test_float_to_bytes(self):
        assert to_bytes(2.5) == b'2.5'


class TestText:

    @pytest.mark.parametrize(('raw', 'expected'), [
        (b'42', 42),
        (b'  42abc', 42),
        (b'-0012', -12),
        (b'+7', 7),
        (b'12.9', 12),
        (b'1e3', 1),
        (b'abc', 0),
        (b'', 0),
        (b'99999999999999999999', INT64_MAX),
        (b'-99999999999999999999', INT64_MIN),
    ])
    def test_integer_prefix(self, raw, expected):
        assert parse_int_prefix(raw) == expected
        assert to_int64(Utf8(raw)) == expected
        assert to_int64(raw) == expected

    @pytest.mark.parametrize(('raw', 'expected'), [
        (b'3.5kg', 3.5),
        (b' 1e3x', 1000.0),
        (b'1e', 1.0),
        (b'.5', 0.5),
        (b'-2.5e-1', -0.25),
        (b'7.', 7.0),
        (b'abc', 0.0),
    ])
    def test_real_prefix(self, raw, expected):
        assert parse_real_prefix(raw) == expected
        assert to_double(Utf8(raw)) == expected

    def test_text_decodes_utf8(self):
        assert to_text(Utf8('négar'.encode())) == 'négar'

    def test_invalid_utf8_never_fails(self):
        assert to_text(Utf8(b'\xff\xfe')) == '\udcff\udcfe'

    def test_text_to_bytes_is_raw(self):
        result = to_bytes(Utf8(b'abc'))
        assert result == b'abc'
        assert type(result) is bytes


class TestBlob:

    def test_blob_identity(self):
        blob = b'\x00\xff\x00abc\xc3'
        assert to_bytes(blob) == blob

    def test_blob_to_numbers_uses_prefix(self):
        assert to_int64(b'12\x00') == 12
        assert to_double(b'2.5\x00') == 2.5

    def test_blob_to_text(self):
        assert to_text(b'caf\xc3\xa9') == 'café'


class TestRenderReal:

    @pytest.mark.parametrize(('x', 'expected'), [
        (1.0, '1.0'),
        (-2.0, '-2.0'),
        (0.1, '0.1'),
        (1e20, '1.0e+20'),
        (1.5e-07, '1.5e-07'),
        (123456789012345.0, '123456789012345.0'),
        (math.inf, 'Inf'),
        (-math.inf, '-Inf'),
    ])
    def test_render(self, x, expected):
        assert render_real(x) == expected


def test_coerce_row():
    row = (29, Utf8(b'amin'), 69.5, None)
    kinds = (Kind.TEXT, Kind.TEXT, Kind.INT32, Nullable(Kind.DOUBLE))
    assert coerce_row(row, kinds) == ('29', 'amin', 69, None)


def test_float_text_uses_given_renderer():
    rendered = []

    def render(x):
        rendered.append(x)
        return '572797545866477.0'

    row = (572797545866476.5, 572797545866476.5, 572797545866476.5, 3)
    kinds = (Kind.TEXT, Kind.BYTES, Kind.INT64, Kind.TEXT)
    assert coerce_row(row, kinds, render) == (
        '572797545866477.0', b'572797545866477.0', 572797545866476, '3')
    assert rendered == [572797545866476.5, 572797545866476.5]
    assert coerce(1.5, Nullable(Kind.TEXT), render) == '572797545866477.0'


if __name__ == '__main__':
    __import__('pytest').main([__file__])
