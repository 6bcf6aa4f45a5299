#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: modbusmsg.py
# PURPOSE: Modbus read request validation and PDU encoding
#
#  AUTHOR: Jason G Yates
#    DATE: 18-Oct-2026
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for building Modbus read requests.

A `Request` is an immutable record of what was asked. `BuildRequest`
validates the parameters against the function table and `EncodePDU`
serializes the protocol data unit, independent of the transport.
"""

import collections
import struct
from typing import Optional

from mbmasterlib.modbusbase import ModbusBase
from mbmasterlib.modbuserrors import InvalidArgument
from mbmasterlib.modbusfunc import FunctionTable

Request = collections.namedtuple(
    "Request", ["function", "address", "quantity", "unit_id", "transaction_id"]
)


def _IsInt(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def BuildRequest(
    function: int,
    address: int,
    quantity: int,
    unit_id: int = 1,
    transaction_id: Optional[int] = None,
) -> Request:
    """
    Validates read parameters and returns a `Request`.

    Args:
        function (int): Read function code (0x01 to 0x04).
        address (int): Starting address, 0 to 0xFFFF.
        quantity (int): Number of elements. Coils and discrete inputs allow
            1 to 2000, registers 1 to 125.
        unit_id (int, optional): Target unit id, 0 to 255. Defaults to 1.
        transaction_id (int, optional): MBAP transaction id for TCP, None for RTU.

    Returns:
        Request: The validated request.

    Raises:
        InvalidArgument: If any parameter is out of range.
    """
    Info = FunctionTable.get(function)
    if Info is None:
        raise InvalidArgument("Unsupported function code: %s" % (function,))

    if not _IsInt(address) or address < ModbusBase.MIN_REGISTER or address > ModbusBase.MAX_REGISTER:
        raise InvalidArgument("%s: starting address out of range: %s" % (Info.name, address))

    if not _IsInt(quantity) or quantity < Info.min_quantity or quantity > Info.max_quantity:
        raise InvalidArgument(
            "%s: quantity must be %d to %d, got %s"
            % (Info.name, Info.min_quantity, Info.max_quantity, quantity)
        )

    if not _IsInt(unit_id) or unit_id < ModbusBase.MIN_UNIT_ID or unit_id > ModbusBase.MAX_UNIT_ID:
        raise InvalidArgument("Unit id out of range: %s" % (unit_id,))

    if transaction_id is not None:
        if not _IsInt(transaction_id) or transaction_id < 0 or transaction_id > ModbusBase.MAX_TRANSACTION_ID:
            raise InvalidArgument("Transaction id out of range: %s" % (transaction_id,))

    return Request(function, address, quantity, unit_id, transaction_id)


def EncodePDU(request: Request) -> bytes:
    """
    Serializes the PDU of a read request.

    Format: [function][address hi][address lo][quantity hi][quantity lo]

    Args:
        request (Request): A request produced by `BuildRequest`.

    Returns:
        bytes: The 5 byte PDU.
    """
    return struct.pack(">BHH", request.function, request.address, request.quantity)


def DescribeRequest(request: Request) -> dict:
    """
    Returns the encoded fields of a request, used for observers and debug logs.

    Args:
        request (Request): The request.

    Returns:
        dict: Field name to value.
    """
    return {
        "function": request.function,
        "name": FunctionTable[request.function].name,
        "address": request.address,
        "quantity": request.quantity,
        "unit_id": request.unit_id,
        "transaction_id": request.transaction_id,
    }
