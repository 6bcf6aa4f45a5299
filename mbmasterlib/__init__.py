# -------------------------------------------------------------------------------
#    FILE: __init__.py
# PURPOSE: mbmasterlib package
#
#  AUTHOR: Jason G Yates
#    DATE: 18-Oct-2026
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""Modbus RTU and Modbus TCP master library."""

from mbmasterlib.modbuserrors import (  # noqa: F401
    FrameCorruption,
    InvalidArgument,
    MalformedResponse,
    ModbusError,
    ModbusTimeout,
    ProtocolMismatch,
    RequestCancelled,
    SessionBusy,
    SlaveException,
    TransportError,
    UnmatchedResponse,
)
from mbmasterlib.mymodbus import ModbusMaster  # noqa: F401
from mbmasterlib.program_defaults import ProgramDefaults

__version__ = ProgramDefaults.MBMASTER_VERSION
