#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: mycrc.py
# PURPOSE: Modbus RTU CRC16
#
#  AUTHOR: Jason G Yates
#    DATE: 18-Oct-2026
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for the Modbus RTU CRC-16.

The checksum is the reflected CRC-16 with polynomial 0xA001 and seed 0xFFFF,
provided by the crcmod predefined "modbus" function. On the wire the CRC is
always sent low byte first, independent of the host byte order.
"""

import struct
from typing import Union

import crcmod.predefined

# CRCMOD library, used for CRC calculations
ModbusCrc = crcmod.predefined.mkCrcFun("modbus")

MBUS_CRC_SIZE = 0x02


def GetCRC(data: Union[bytes, bytearray]) -> int:
    """
    Calculates the Modbus CRC-16 of a byte sequence.

    Args:
        data (Union[bytes, bytearray]): Unit id and PDU bytes.

    Returns:
        int: The 16 bit checksum.
    """
    return ModbusCrc(bytes(data))


def CRCToBytes(crc: int) -> bytes:
    """
    Converts a checksum to its wire representation.

    Args:
        crc (int): The 16 bit checksum.

    Returns:
        bytes: CRC low byte followed by CRC high byte.
    """
    return struct.pack("<H", crc & 0xFFFF)


def CheckCRC(frame: Union[bytes, bytearray]) -> bool:
    """
    Verifies the trailing CRC of an RTU frame.

    Args:
        frame (Union[bytes, bytearray]): Complete frame including the two CRC bytes.

    Returns:
        bool: True if the CRC matches the rest of the frame.
    """
    if len(frame) <= MBUS_CRC_SIZE:
        return False
    (received,) = struct.unpack("<H", bytes(frame[-MBUS_CRC_SIZE:]))
    return GetCRC(frame[:-MBUS_CRC_SIZE]) == received
