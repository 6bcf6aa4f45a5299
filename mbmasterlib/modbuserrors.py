#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: modbuserrors.py
# PURPOSE: Modbus master error classes
#
#  AUTHOR: Jason G Yates
#    DATE: 18-Oct-2026
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module defining the errors raised by the Modbus master.

Every failure the master can report derives from `ModbusError` so callers
can catch the whole family at once, or pick out a single class. Parameter
errors are raised before any I/O. Link and protocol errors are raised
unmodified from the transaction that detected them.
"""

from typing import Optional


# ------------ ModbusError class --------------------------------------------------
class ModbusError(Exception):
    """Base class for all Modbus master errors."""


class InvalidArgument(ModbusError, ValueError):
    """A request parameter or configuration value is out of range."""


class SessionBusy(ModbusError):
    """A request was issued while another is still outstanding."""


class ModbusTimeout(ModbusError, TimeoutError):
    """No complete response arrived before the deadline."""


class FrameCorruption(ModbusError):
    """An RTU response failed its CRC check."""


class ProtocolMismatch(ModbusError):
    """Header fields (protocol id, unit id, function code) are inconsistent."""


class UnmatchedResponse(ModbusError):
    """A TCP response carries a transaction id with no outstanding request."""


class MalformedResponse(ModbusError):
    """A response is shorter than, or inconsistent with, what it declares."""


class RequestCancelled(ModbusError):
    """The caller cancelled a request while it was waiting for the response."""


class TransportError(ModbusError):
    """The link could not be opened or the frame could not be written."""


# ------------ SlaveException class -----------------------------------------------
class SlaveException(ModbusError):
    """
    The slave answered with a Modbus exception response.

    Attributes:
        function (int): The function code of the original request.
        code (int): The Modbus exception code.
        text (str): Human readable name of the exception code.
    """

    def __init__(self, function: int, code: int, text: Optional[str] = None):
        self.function = function
        self.code = code
        self.text = text if text is not None else "Unknown"
        super(SlaveException, self).__init__(
            "Modbus exception %02x (%s) for function %02x" % (code, self.text, function)
        )
