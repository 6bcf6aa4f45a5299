#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: modbusframe.py
# PURPOSE: Modbus RTU and Modbus TCP framing
#
#  AUTHOR: Jason G Yates
#    DATE: 18-Oct-2026
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for wrapping a PDU in its transport envelope.

RTU:  [unit id][PDU][CRC lo][CRC hi]
TCP:  [transaction id hi][lo][protocol id 0][0][length hi][lo][unit id][PDU]

The MBAP length counts the unit id and the PDU. Builders are pure and never
touch the link.
"""

import collections
import struct
from typing import Union

from mbmasterlib.modbusbase import ModbusBase, MODE_RTU, MODE_TCP
from mbmasterlib.modbuserrors import InvalidArgument, MalformedResponse
from mbmasterlib.modbusmsg import Request, EncodePDU
from mbmasterlib.mycrc import GetCRC, CRCToBytes

MBAPHeader = collections.namedtuple(
    "MBAPHeader", ["transaction_id", "protocol_id", "length", "unit_id"]
)


def BuildRTUFrame(pdu: bytes, unit_id: int) -> bytes:
    """
    Builds a Modbus RTU frame.

    Args:
        pdu (bytes): The protocol data unit.
        unit_id (int): Slave address.

    Returns:
        bytes: unit id + PDU + CRC (low byte first).
    """
    Packet = struct.pack(">B", unit_id) + bytes(pdu)
    return Packet + CRCToBytes(GetCRC(Packet))


def BuildTCPFrame(pdu: bytes, unit_id: int, transaction_id: int) -> bytes:
    """
    Builds a Modbus TCP (MBAP) frame.

    Args:
        pdu (bytes): The protocol data unit.
        unit_id (int): Unit identifier.
        transaction_id (int): Transaction identifier, echoed by the server.

    Returns:
        bytes: MBAP header + unit id + PDU.
    """
    # byte 0-1: transaction identifier
    # byte 2-3: protocol identifier = 0
    # byte 4-5: length field = number of bytes following (unit id + PDU)
    # byte 6:   unit identifier
    return (
        struct.pack(
            ">HHHB",
            transaction_id,
            ModbusBase.MODBUS_PROTOCOL_ID,
            len(pdu) + ModbusBase.MBUS_ADDRESS_SIZE,
            unit_id,
        )
        + bytes(pdu)
    )


def BuildFrame(request: Request, mode: str) -> bytes:
    """
    Encodes a request and frames it for the given transport.

    Args:
        request (Request): The request. TCP requires a transaction id.
        mode (str): MODE_RTU or MODE_TCP.

    Returns:
        bytes: The complete frame.

    Raises:
        InvalidArgument: Unknown mode, or a TCP request without transaction id.
    """
    pdu = EncodePDU(request)
    if mode == MODE_RTU:
        return BuildRTUFrame(pdu, request.unit_id)
    if mode == MODE_TCP:
        if request.transaction_id is None:
            raise InvalidArgument("Modbus TCP request needs a transaction id")
        return BuildTCPFrame(pdu, request.unit_id, request.transaction_id)
    raise InvalidArgument("Unknown transport mode: %s" % (mode,))


def ParseMBAPHeader(data: Union[bytes, bytearray]) -> MBAPHeader:
    """
    Splits the first 7 bytes of a Modbus TCP frame into header fields.

    Args:
        data (Union[bytes, bytearray]): At least 7 bytes.

    Returns:
        MBAPHeader: transaction id, protocol id, length, unit id.

    Raises:
        MalformedResponse: If fewer than 7 bytes are given.
    """
    if len(data) < ModbusBase.MBAP_HEADER_SIZE:
        raise MalformedResponse("Modbus TCP header too short: %d bytes" % len(data))
    return MBAPHeader(*struct.unpack(">HHHB", bytes(data[: ModbusBase.MBAP_HEADER_SIZE])))
