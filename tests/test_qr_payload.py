# tests/test_qr_payload.py
"""Exit ticket QR payload parsing."""

import pytest
from terminal.utils.qr_payload import QrPayload, encode_qr_payload, parse_qr_payload


class TestQrPayload:
    def test_encode(self):
        assert encode_qr_payload("ABC-123", "00000007", "FD1") == "vehicle:ABC-123|ticket:00000007|fd:FD1"

    def test_parse_valid(self):
        assert parse_qr_payload("vehicle:ABC-123|ticket:00000007|fd:FD2") == QrPayload("ABC-123", "00000007", "FD2")

    @pytest.mark.parametrize("raw", [
        "",
        "garbage",
        "vehicle:ABC-123|ticket:00000007",
        "vehicle:ABC-123|ticket:00000007|fd:FD1|time:1700000000000",
        "ticket:00000007|vehicle:ABC-123|fd:FD1",
        "vehicle:|ticket:00000007|fd:FD1",
        "vehicle:ABC-123|ticket:7|fd:FD1",
        "vehicle:ABC-123|ticket:0000000A|fd:FD1",
        "vehicle ABC-123|ticket:00000007|fd:FD1",
        "vehicle:ÁBC-123|ticket:00000007|fd:FD1",
    ])
    def test_malformed_rejected(self, raw):
        assert parse_qr_payload(raw) is None

    def test_value_may_contain_colon(self):
        parsed = parse_qr_payload("vehicle:AB:12|ticket:00000001|fd:FD3")
        assert parsed.plate_number == "AB:12"
