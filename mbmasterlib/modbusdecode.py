#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: modbusdecode.py
# PURPOSE: Modbus response validation and decoding
#
#  AUTHOR: Jason G Yates
#    DATE: 18-Oct-2026
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for validating and decoding slave responses.

A received frame is first checked at the envelope level (CRC for RTU, MBAP
header for TCP), then the PDU is decoded against the request that produced
it. An exception response is a successful decode that yields an
`ExceptionResponse`; every other inconsistency raises a `ModbusError`
subclass. Nothing partially valid is ever returned.
"""

import collections
from typing import Optional, Union

from mbmasterlib.modbusbase import ModbusBase, MODE_RTU, MODE_TCP
from mbmasterlib.modbuserrors import (
    FrameCorruption,
    InvalidArgument,
    MalformedResponse,
    ProtocolMismatch,
    UnmatchedResponse,
)
from mbmasterlib.modbusfunc import FunctionTable, ExpectedDataLength
from mbmasterlib.modbusframe import MBAPHeader, ParseMBAPHeader
from mbmasterlib.modbusmsg import Request
from mbmasterlib.mycrc import CheckCRC

ReadResult = collections.namedtuple("ReadResult", ["request", "values"])
ExceptionResponse = collections.namedtuple(
    "ExceptionResponse", ["request", "function", "code", "text"]
)

MIN_TCP_LENGTH = 0x03  # unit id + exception function + exception code


def RTUFrameLength(head: Union[bytes, bytearray], request: Optional[Request] = None) -> int:
    """
    Returns the total length of an RTU response from its first 3 bytes.

    The byte count in the head is not CRC checked yet. When the request is
    given, the length is capped at what a correct reply to it carries.

    Args:
        head (Union[bytes, bytearray]): unit id, function, byte count or exception code.
        request (Request, optional): The outstanding request.

    Returns:
        int: Total frame length including the CRC.
    """
    if head[ModbusBase.MBUS_OFF_COMMAND] & ModbusBase.MBUS_ERROR_BIT:
        return ModbusBase.MIN_PACKET_ERR_LENGTH
    Declared = head[ModbusBase.MBUS_OFF_RESPONSE_LEN]
    if request is not None:
        Declared = min(Declared, ExpectedDataLength(request.function, request.quantity))
    return Declared + ModbusBase.MBUS_RES_PAYLOAD_SIZE_MINUS_LENGTH


def CheckMBAPHeader(header: MBAPHeader, request: Request) -> None:
    """
    Validates a Modbus TCP response header against its request.

    Args:
        header (MBAPHeader): The parsed response header.
        request (Request): The outstanding request.

    Raises:
        ProtocolMismatch: Protocol id is not 0 or the unit id differs.
        UnmatchedResponse: The transaction id differs.
        MalformedResponse: The length field is out of range.
    """
    if header.protocol_id != ModbusBase.MODBUS_PROTOCOL_ID:
        raise ProtocolMismatch("ModbusTCP protocol ID non zero: %04x" % header.protocol_id)
    if header.transaction_id != request.transaction_id:
        raise UnmatchedResponse(
            "ModbusTCP transaction ID mismatch: %04x %04x"
            % (request.transaction_id, header.transaction_id)
        )
    if header.unit_id != request.unit_id:
        raise ProtocolMismatch(
            "ModbusTCP unit ID mismatch: %02x %02x" % (request.unit_id, header.unit_id)
        )
    if header.length < MIN_TCP_LENGTH or header.length > ModbusBase.MAX_MBAP_LENGTH:
        raise MalformedResponse("ModbusTCP length out of range: %d" % header.length)


def DecodePDU(pdu: Union[bytes, bytearray], request: Request):
    """
    Decodes a response PDU for a read request.

    Args:
        pdu (Union[bytes, bytearray]): Function code and payload.
        request (Request): The request the PDU answers.

    Returns:
        Union[ReadResult, ExceptionResponse]: The decoded response.

    Raises:
        ProtocolMismatch: The function code does not belong to the request.
        MalformedResponse: Byte count or length is inconsistent.
    """
    if len(pdu) < 2:
        raise MalformedResponse("Response PDU too short: %d bytes" % len(pdu))

    function = pdu[0]
    if function & ModbusBase.MBUS_ERROR_BIT:
        if function & ~ModbusBase.MBUS_ERROR_BIT != request.function:
            raise ProtocolMismatch(
                "Exception for function %02x, expected %02x"
                % (function & ~ModbusBase.MBUS_ERROR_BIT, request.function)
            )
        if len(pdu) != 2:
            raise MalformedResponse("Exception response length %d" % len(pdu))
        code = pdu[1]
        return ExceptionResponse(
            request, request.function, code, ModbusBase.GetExceptionString(code)
        )

    if function != request.function:
        raise ProtocolMismatch(
            "Validation Error: Command Mismatch : %02x:%02x" % (request.function, function)
        )

    byte_count = pdu[1]
    expected = ExpectedDataLength(request.function, request.quantity)
    if byte_count != expected:
        raise MalformedResponse(
            "Byte count %d does not match %d requested elements (expected %d)"
            % (byte_count, request.quantity, expected)
        )
    data = pdu[2:]
    if len(data) != byte_count:
        raise MalformedResponse(
            "Byte count %d but %d data bytes received" % (byte_count, len(data))
        )

    return ReadResult(request, FunctionTable[request.function].decode(data, request.quantity))


def DecodeResponse(frame: Union[bytes, bytearray], request: Request, mode: str):
    """
    Validates a complete received frame and decodes it.

    RTU: the CRC must match, then the unit id must be the request's.
    TCP: protocol id 0, matching transaction id, matching unit id, and a
    length field that covers exactly the rest of the frame.

    Args:
        frame (Union[bytes, bytearray]): The received bytes.
        request (Request): The outstanding request.
        mode (str): MODE_RTU or MODE_TCP.

    Returns:
        Union[ReadResult, ExceptionResponse]: The decoded response.
    """
    frame = bytes(frame)
    if mode == MODE_RTU:
        if len(frame) < ModbusBase.MIN_PACKET_ERR_LENGTH:
            raise MalformedResponse("RTU response too short: %d bytes" % len(frame))
        if not CheckCRC(frame):
            raise FrameCorruption("Data Error: CRC check failed")
        if frame[ModbusBase.MBUS_OFF_ADDRESS] != request.unit_id:
            raise ProtocolMismatch(
                "Response address %02x, expected %02x"
                % (frame[ModbusBase.MBUS_OFF_ADDRESS], request.unit_id)
            )
        pdu = frame[ModbusBase.MBUS_ADDRESS_SIZE:-ModbusBase.MBUS_CRC_SIZE]

    elif mode == MODE_TCP:
        header = ParseMBAPHeader(frame)
        CheckMBAPHeader(header, request)
        if header.length != len(frame) - ModbusBase.MODBUS_TCP_HEADER_SIZE:
            raise MalformedResponse(
                "ModbusTCP length %d, %d bytes received"
                % (header.length, len(frame) - ModbusBase.MODBUS_TCP_HEADER_SIZE)
            )
        pdu = frame[ModbusBase.MBAP_HEADER_SIZE:]
    else:
        raise InvalidArgument("Unknown transport mode: %s" % (mode,))

    return DecodePDU(pdu, request)
