"""Tests for response validation and decoding."""

import pytest

from mbmasterlib.modbusbase import MODE_RTU, MODE_TCP
from mbmasterlib.modbusdecode import (
    DecodePDU,
    DecodeResponse,
    ExceptionResponse,
    ReadResult,
    RTUFrameLength,
)
from mbmasterlib.modbuserrors import (
    FrameCorruption,
    InvalidArgument,
    MalformedResponse,
    ProtocolMismatch,
    UnmatchedResponse,
)
from mbmasterlib.modbusframe import BuildRTUFrame, BuildTCPFrame
from mbmasterlib.modbusmsg import BuildRequest


class TestDecodeRTU:
    def test_holding_registers_reference_response(self):
        request = BuildRequest(0x03, 0x006B, 3, unit_id=0x11)
        frame = BuildRTUFrame(bytes.fromhex("0306022b00000064"), 0x11)
        result = DecodeResponse(frame, request, MODE_RTU)
        assert result == ReadResult(request, [0x022B, 0x0000, 0x0064])

    def test_coils_lsb_first(self):
        request = BuildRequest(0x01, 0, 3, unit_id=1)
        frame = BuildRTUFrame(bytes([0x01, 0x01, 0b00000101]), 1)
        assert DecodeResponse(frame, request, MODE_RTU).values == [True, False, True]

    def test_discrete_inputs(self):
        request = BuildRequest(0x02, 0x00C4, 22, unit_id=0x11)
        frame = BuildRTUFrame(bytes.fromhex("0203acdb35"), 0x11)
        values = DecodeResponse(frame, request, MODE_RTU).values
        assert len(values) == 22
        assert values[:8] == [False, False, True, True, False, True, False, True]

    def test_input_registers(self):
        request = BuildRequest(0x04, 0x0008, 1, unit_id=0x11)
        frame = BuildRTUFrame(bytes.fromhex("0402000a"), 0x11)
        assert DecodeResponse(frame, request, MODE_RTU).values == [10]

    def test_exception_response(self):
        request = BuildRequest(0x01, 0, 8, unit_id=1)
        frame = BuildRTUFrame(bytes([0x81, 0x02]), 1)
        result = DecodeResponse(frame, request, MODE_RTU)
        assert isinstance(result, ExceptionResponse)
        assert result.function == 0x01
        assert result.code == 0x02
        assert result.text == "Illegal Data Address"

    def test_unknown_exception_code(self):
        request = BuildRequest(0x03, 0, 1, unit_id=1)
        result = DecodeResponse(BuildRTUFrame(b"\x83\x42", 1), request, MODE_RTU)
        assert result.code == 0x42
        assert result.text == "Unknown"

    def test_every_single_bit_flip_is_corruption(self):
        request = BuildRequest(0x03, 0x006B, 3, unit_id=0x11)
        frame = BuildRTUFrame(bytes.fromhex("0306022b00000064"), 0x11)
        for index in range(len(frame)):
            for bit in range(8):
                corrupt = bytearray(frame)
                corrupt[index] ^= 1 << bit
                with pytest.raises(FrameCorruption):
                    DecodeResponse(bytes(corrupt), request, MODE_RTU)

    def test_unit_id_mismatch(self):
        request = BuildRequest(0x03, 0, 1, unit_id=0x11)
        frame = BuildRTUFrame(bytes.fromhex("03020001"), 0x12)
        with pytest.raises(ProtocolMismatch):
            DecodeResponse(frame, request, MODE_RTU)

    def test_too_short(self):
        request = BuildRequest(0x03, 0, 1, unit_id=1)
        with pytest.raises(MalformedResponse):
            DecodeResponse(b"\x01\x03\x00", request, MODE_RTU)

    def test_unknown_mode(self):
        request = BuildRequest(0x03, 0, 1, unit_id=1)
        with pytest.raises(InvalidArgument):
            DecodeResponse(BuildRTUFrame(b"\x03\x02\x00\x01", 1), request, "ascii")


class TestDecodeTCP:
    def make_request(self, function=0x03, quantity=2, transaction_id=0x0005):
        return BuildRequest(function, 0, quantity, unit_id=0x11, transaction_id=transaction_id)

    def test_registers(self):
        request = self.make_request()
        frame = BuildTCPFrame(bytes.fromhex("030400010002"), 0x11, 0x0005)
        assert DecodeResponse(frame, request, MODE_TCP).values == [1, 2]

    def test_protocol_id_nonzero(self):
        request = self.make_request()
        frame = bytearray(BuildTCPFrame(bytes.fromhex("030400010002"), 0x11, 0x0005))
        frame[3] = 0x01
        with pytest.raises(ProtocolMismatch):
            DecodeResponse(bytes(frame), request, MODE_TCP)

    def test_transaction_id_mismatch(self):
        request = self.make_request()
        frame = BuildTCPFrame(bytes.fromhex("030400010002"), 0x11, 0x0006)
        with pytest.raises(UnmatchedResponse):
            DecodeResponse(frame, request, MODE_TCP)

    def test_unit_id_mismatch(self):
        request = self.make_request()
        frame = BuildTCPFrame(bytes.fromhex("030400010002"), 0x12, 0x0005)
        with pytest.raises(ProtocolMismatch):
            DecodeResponse(frame, request, MODE_TCP)

    def test_length_field_mismatch(self):
        request = self.make_request()
        frame = BuildTCPFrame(bytes.fromhex("030400010002"), 0x11, 0x0005)
        with pytest.raises(MalformedResponse):
            DecodeResponse(frame[:-1], request, MODE_TCP)

    def test_exception_response(self):
        request = self.make_request(function=0x04)
        frame = BuildTCPFrame(b"\x84\x0b", 0x11, 0x0005)
        result = DecodeResponse(frame, request, MODE_TCP)
        assert result.function == 0x04
        assert result.code == 0x0B

    def test_round_trip_reproduces_request(self):
        request = self.make_request(function=0x02, quantity=10, transaction_id=0xFFFF)
        frame = BuildTCPFrame(b"\x02\x02\xff\x03", 0x11, 0xFFFF)
        result = DecodeResponse(frame, request, MODE_TCP)
        assert result.request.function == 0x02
        assert result.request.address == 0
        assert result.request.quantity == 10
        assert result.values == [True] * 10


class TestDecodePDU:
    def test_function_mismatch(self):
        with pytest.raises(ProtocolMismatch):
            DecodePDU(b"\x04\x02\x00\x01", BuildRequest(0x03, 0, 1))

    def test_exception_for_other_function(self):
        with pytest.raises(ProtocolMismatch):
            DecodePDU(b"\x82\x02", BuildRequest(0x01, 0, 1))

    def test_exception_without_code(self):
        with pytest.raises(MalformedResponse):
            DecodePDU(b"\x81", BuildRequest(0x01, 0, 1))

    def test_exception_with_trailing_bytes(self):
        with pytest.raises(MalformedResponse):
            DecodePDU(b"\x81\x02\x00", BuildRequest(0x01, 0, 1))

    def test_register_byte_count_mismatch(self):
        with pytest.raises(MalformedResponse):
            DecodePDU(b"\x03\x02\x00\x01", BuildRequest(0x03, 0, 2))

    def test_coil_byte_count_mismatch(self):
        with pytest.raises(MalformedResponse):
            DecodePDU(b"\x01\x02\x05\x00", BuildRequest(0x01, 0, 3))

    def test_data_shorter_than_byte_count(self):
        with pytest.raises(MalformedResponse):
            DecodePDU(b"\x03\x04\x00\x01\x00", BuildRequest(0x03, 0, 2))

    def test_data_longer_than_byte_count(self):
        with pytest.raises(MalformedResponse):
            DecodePDU(b"\x03\x02\x00\x01\x00", BuildRequest(0x03, 0, 1))


class TestRTUFrameLength:
    def test_normal_response(self):
        assert RTUFrameLength(b"\x11\x03\x06") == 11

    def test_exception_response(self):
        assert RTUFrameLength(b"\x11\x83\x02") == 5

    def test_capped_by_request(self):
        request = BuildRequest(0x03, 0, 2, unit_id=0x11)
        assert RTUFrameLength(b"\x11\x03\x44", request) == 9

    def test_shorter_count_is_kept(self):
        request = BuildRequest(0x01, 0, 16, unit_id=0x11)
        assert RTUFrameLength(b"\x11\x01\x01", request) == 6

    def test_exception_ignores_request(self):
        request = BuildRequest(0x04, 0, 10, unit_id=0x11)
        assert RTUFrameLength(b"\x11\x84\x02", request) == 5
