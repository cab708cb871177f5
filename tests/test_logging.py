"""
Tests for bridge logging helpers.
"""

from cl8y_bridge.utils.logging import render_bytes_as_hex


class TestRenderBytesAsHex:
    def test_bytes_fields_become_hex(self):
        event = {"event": "deposit_recorded", "transfer_hash": b"\xab" * 32, "dest_chain": bytearray(b"\x00\x00\x00\x02")}
        rendered = render_bytes_as_hex(None, "info", event)
        assert rendered["transfer_hash"] == "0x" + "ab" * 32
        assert rendered["dest_chain"] == "0x00000002"

    def test_other_fields_untouched(self):
        event = {"event": "withdraw_submitted", "nonce": 3, "amount": 10**30}
        assert render_bytes_as_hex(None, "info", dict(event)) == event
