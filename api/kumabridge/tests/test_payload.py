"""Tests for tolerant payload decoding and field lookup."""

from decimal import Decimal

import pytest

from kumabridge.messages.payload import decode_payload, lookup, number_text, scalar_text


class TestDecodePayload:
    def test_decodes_object(self):
        payload = decode_payload(b'{"monitor": {"name": "Demo"}, "status": "up"}')
        assert payload == {"monitor": {"name": "Demo"}, "status": "up"}

    def test_non_integral_numbers_keep_their_digits(self):
        payload = decode_payload(b'{"ping": 12.50, "count": 3}')
        assert payload["ping"] == Decimal("12.50")
        assert str(payload["ping"]) == "12.50"
        assert payload["count"] == 3

    @pytest.mark.parametrize(
        "body",
        [b"", b"not json", b"[1, 2, 3]", b'"text"', b"null", b'{"a": NaN}', b'{"a": "\xff"}'],
    )
    def test_rejects_non_objects_and_garbage(self, body):
        with pytest.raises(ValueError):
            decode_payload(body)

    def test_deep_nesting_is_a_decode_error(self):
        body = b"[" * 100000 + b"]" * 100000
        with pytest.raises(ValueError):
            decode_payload(body)


class TestScalarText:
    def test_strings_are_stripped(self):
        assert scalar_text("  Demo \n") == "Demo"

    def test_empty_string_is_absent(self):
        assert scalar_text("   ") is None

    @pytest.mark.parametrize("value", [None, True, False, [], {}, ["a"], {"a": 1}])
    def test_non_scalars_are_absent(self, value):
        assert scalar_text(value) is None

    def test_integers(self):
        assert scalar_text(0) == "0"
        assert scalar_text(443) == "443"
        assert scalar_text(12345678901234567890123) == "12345678901234567890123"

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("12.0", "12"),
            ("1e3", "1000"),
            ("1.5E+2", "150"),
            ("0.50", "0.50"),
            ("123.456", "123.456"),
            ("1e-3", "0.001"),
        ],
    )
    def test_decimals_render_without_artifacts(self, text, expected):
        assert scalar_text(Decimal(text)) == expected

    def test_huge_exponent_stays_compact(self):
        assert number_text(Decimal("1e999999999")) == "1E+999999999"

    def test_floats(self):
        assert scalar_text(42.0) == "42"
        assert scalar_text(0.25) == "0.25"
        assert scalar_text(float("nan")) is None


class TestLookup:
    PAYLOAD = {
        "monitor": {"name": "Demo", "port": 8080, "tags": ["a"]},
        "heartbeat": None,
        "msg": "hello",
    }

    def test_top_level(self):
        assert lookup(self.PAYLOAD, "msg") == "hello"

    def test_nested(self):
        assert lookup(self.PAYLOAD, "monitor", "name") == "Demo"
        assert lookup(self.PAYLOAD, "monitor", "port") == "8080"

    @pytest.mark.parametrize(
        "path",
        [
            ("missing",),
            ("monitor", "missing"),
            ("monitor", "tags"),
            ("monitor", "name", "deeper"),
            ("heartbeat", "status"),
            ("msg", "nested"),
            ("monitor",),
        ],
    )
    def test_broken_paths_are_absent(self, path):
        assert lookup(self.PAYLOAD, *path) is None

    def test_non_object_root(self):
        assert lookup(["monitor"], "monitor") is None
        assert lookup(None, "monitor") is None
