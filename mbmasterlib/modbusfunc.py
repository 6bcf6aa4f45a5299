#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: modbusfunc.py
# PURPOSE: Supported read functions and their payload decoders
#
#  AUTHOR: Jason G Yates
#    DATE: 18-Oct-2026
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module describing the supported Modbus read functions.

`FunctionTable` maps each function code to its quantity limits and the
decoder for the data bytes of a successful response, so encoding and decoding
share one code path for all four reads.
"""

import collections
import struct
from typing import List, Union

from mbmasterlib.modbusbase import ModbusBase

FunctionInfo = collections.namedtuple(
    "FunctionInfo", ["name", "min_quantity", "max_quantity", "is_bits", "decode"]
)


def BitByteCount(quantity: int) -> int:
    """Number of data bytes needed to carry `quantity` packed bits."""
    return (quantity + 7) // 8


def DecodeBits(data: Union[bytes, bytearray], quantity: int) -> List[bool]:
    """
    Unpacks coil or discrete input status bytes.

    Bits are packed LSB first, the first requested element in bit 0 of the
    first byte. Padding bits past `quantity` in the last byte are ignored.

    Args:
        data (Union[bytes, bytearray]): The status bytes (without byte count).
        quantity (int): Number of bits requested.

    Returns:
        List[bool]: One entry per requested element.
    """
    values = []
    for index in range(quantity):
        values.append(bool((data[index // 8] >> (index % 8)) & 0x01))
    return values


def DecodeRegisters(data: Union[bytes, bytearray], quantity: int) -> List[int]:
    """
    Unpacks big-endian 16 bit register values.

    Args:
        data (Union[bytes, bytearray]): The register bytes (without byte count).
        quantity (int): Number of registers requested.

    Returns:
        List[int]: Unsigned register values.
    """
    return list(struct.unpack(">%dH" % quantity, bytes(data[: quantity * 2])))


FunctionTable = {
    ModbusBase.MBUS_CMD_READ_COILS: FunctionInfo(
        "ReadCoils", 1, ModbusBase.MAX_READ_BITS, True, DecodeBits
    ),
    ModbusBase.MBUS_CMD_READ_DISCRETE_INPUTS: FunctionInfo(
        "ReadDiscreteInputs", 1, ModbusBase.MAX_READ_BITS, True, DecodeBits
    ),
    ModbusBase.MBUS_CMD_READ_HOLDING_REGS: FunctionInfo(
        "ReadHoldingRegisters", 1, ModbusBase.MAX_READ_REGS, False, DecodeRegisters
    ),
    ModbusBase.MBUS_CMD_READ_INPUT_REGS: FunctionInfo(
        "ReadInputRegisters", 1, ModbusBase.MAX_READ_REGS, False, DecodeRegisters
    ),
}


def ExpectedDataLength(function: int, quantity: int) -> int:
    """
    Returns the byte count a correct response to a read must declare.

    Args:
        function (int): A function code from `FunctionTable`.
        quantity (int): Number of elements requested.

    Returns:
        int: ceil(quantity / 8) for bit reads, 2 * quantity for registers.
    """
    if FunctionTable[function].is_bits:
        return BitByteCount(quantity)
    return quantity * ModbusBase.MBUS_REG_SIZE
