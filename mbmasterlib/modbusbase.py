#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: modbusbase.py
# PURPOSE: Base modbus class support
#
#  AUTHOR: Jason G Yates
#    DATE: 19-Apr-2018
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for base Modbus functionality.

This module defines the `ModbusBase` class, which provides the protocol
constants shared by the encoder, frame builder and decoder, and keeps the
communication statistics of a master session.
"""

import datetime
from typing import Any, Dict, List

from mbmasterlib.mysupport import MySupport

MODE_RTU = "rtu"
MODE_TCP = "tcp"
MODES = (MODE_RTU, MODE_TCP)


# ------------ ModbusBase class -------------------------------------------------
class ModbusBase(MySupport):
    """
    Base class for Modbus communication.

    Provides constants for Modbus packet structure, function codes, and
    exception codes. Also manages communication statistics.

    Attributes:
        RxPacketCount (int): Received (valid) packet count.
        TxPacketCount (int): Transmitted packet count.
        ComTimoutError (int): Communication timeout error count.
        TotalElapsedPacketeTime (float): Total time spent in packet transactions.
        ModbusException (int): Count of Modbus exception responses.
        CrcError (int): CRC error count.
        ComValidationError (int): Header and length validation error count.
        UnmatchedError (int): Responses with no matching transaction.
        Cancelled (int): Requests cancelled by the caller.
        ModbusStartTime (datetime.datetime): Start of the statistics period.
    """

    # --------------------- MODBUS specific Const defines for modbus class-------
    # Packet offsets (RTU frame, or TCP frame after the first 6 header bytes)
    MBUS_OFF_ADDRESS = 0x00
    MBUS_OFF_COMMAND = 0x01
    MBUS_OFF_RESPONSE_LEN = 0x02

    # Field Sizes
    MBUS_ADDRESS_SIZE = 0x01
    MBUS_COMMAND_SIZE = 0x01
    MBUS_CRC_SIZE = 0x02
    MBUS_RES_LENGTH_SIZE = 0x01
    MBUS_REG_SIZE = 0x02

    # Packet lengths
    MODBUS_TCP_HEADER_SIZE = 0x06
    MBAP_HEADER_SIZE = 0x07  # TCP header plus unit id
    MBUS_RES_PAYLOAD_SIZE_MINUS_LENGTH = (
        MBUS_ADDRESS_SIZE + MBUS_COMMAND_SIZE + MBUS_RES_LENGTH_SIZE + MBUS_CRC_SIZE
    )
    MIN_PACKET_ERR_LENGTH = 0x05
    MAX_MBAP_LENGTH = 0xFE  # unit id + largest PDU (253 bytes)

    # Variable limits
    MAX_REGISTER = 0xFFFF
    MIN_REGISTER = 0x0
    MAX_UNIT_ID = 0xFF
    MIN_UNIT_ID = 0x0
    MAX_TRANSACTION_ID = 0xFFFF
    MODBUS_PROTOCOL_ID = 0x0000

    # commands
    MBUS_CMD_READ_COILS = 0x01          # Read multiple coils
    MBUS_CMD_READ_DISCRETE_INPUTS = 0x02    # read multiple discrete inputs (bits)
    MBUS_CMD_READ_HOLDING_REGS = 0x03       # Read Multiple Holding Registers
    MBUS_CMD_READ_INPUT_REGS = 0x04     # Read multiple Inputs Registers

    # quantity limits
    MAX_READ_BITS = 0x07D0  # 2000
    MAX_READ_REGS = 0x007D  # 125

    # Values
    MBUS_ERROR_BIT = 0x80

    # Exception codes
    MBUS_EXCEP_FUNCTION = 0x01  # Illegal Function
    MBUS_EXCEP_ADDRESS = 0x02  # Illegal Address
    MBUS_EXCEP_DATA = 0x03  # Illegal Data Value
    MBUS_EXCEP_SLAVE_FAIL = 0x04  # Slave Device Failure
    MBUS_EXCEP_ACK = 0x05  # Acknowledge
    MBUS_EXCEP_BUSY = 0x06  # Slave Device Busy
    MBUS_EXCEP_NACK = 0x07  # Negative Acknowledge
    MBUS_EXCEP_MEM_PE = 0x08  # Memory Parity Error
    MBUS_EXCEP_GATEWAY = 0x0a  # Gateway Path Unavailable
    MBUS_EXCEP_GATEWAY_TG = 0x0b  # Gateway Target Device Failed to Respond

    ExceptionStrings = {
        MBUS_EXCEP_FUNCTION: "Illegal Function",
        MBUS_EXCEP_ADDRESS: "Illegal Data Address",
        MBUS_EXCEP_DATA: "Illegal Data Value",
        MBUS_EXCEP_SLAVE_FAIL: "Slave Device Failure",
        MBUS_EXCEP_ACK: "Acknowledge",
        MBUS_EXCEP_BUSY: "Slave Device Busy",
        MBUS_EXCEP_NACK: "Negative Acknowledge",
        MBUS_EXCEP_MEM_PE: "Memory Parity Error",
        MBUS_EXCEP_GATEWAY: "Gateway Path Unavailable",
        MBUS_EXCEP_GATEWAY_TG: "Gateway Target Device Failed to Respond",
    }

    def __init__(self):
        """Initializes the ModbusBase instance."""
        super(ModbusBase, self).__init__()
        self.ExceptionCounts: Dict[int, int] = {}
        self.ResetCommStats()

    @classmethod
    def GetExceptionString(cls, Code: int) -> str:
        """
        Retrieves the description of a Modbus exception code.

        Args:
            Code (int): The Modbus exception code.

        Returns:
            str: A human-readable description of the exception.
        """
        return cls.ExceptionStrings.get(Code, "Unknown")

    def CountException(self, Code: int) -> None:
        """
        Updates the exception counters for a received exception response.

        Args:
            Code (int): The Modbus exception code.
        """
        self.ModbusException += 1
        self.ExceptionCounts[Code] = self.ExceptionCounts.get(Code, 0) + 1

    def GetCommStats(self) -> List[Dict[str, Any]]:
        """
        Retrieves communication statistics.

        Returns:
            List[Dict[str, Any]]: A list of dictionaries containing stats.
        """
        SerialStats = []

        SerialStats.append(
            {"Packet Count": "M: %d, S: %d" % (self.TxPacketCount, self.RxPacketCount)}
        )

        if self.CrcError == 0 or self.TxPacketCount == 0:
            PercentErrors = 0.0
        else:
            PercentErrors = float(self.CrcError) / float(self.TxPacketCount)

        if self.ComTimoutError == 0 or self.TxPacketCount == 0:
            PercentTimeoutErrors = 0.0
        else:
            PercentTimeoutErrors = float(self.ComTimoutError) / float(
                self.TxPacketCount
            )

        SerialStats.append({"CRC Errors": "%d " % self.CrcError})
        SerialStats.append(
            {"CRC Percent Errors": ("%.2f" % (PercentErrors * 100)) + "%"}
        )
        SerialStats.append({"Timeout Errors": "%d" % self.ComTimoutError})
        SerialStats.append(
            {"Timeout Percent Errors": ("%.2f" % (PercentTimeoutErrors * 100)) + "%"}
        )
        SerialStats.append({"Modbus Exceptions": self.ModbusException})
        for Code in sorted(self.ExceptionCounts):
            SerialStats.append(
                {self.GetExceptionString(Code): self.ExceptionCounts[Code]}
            )
        SerialStats.append({"Validation Errors": self.ComValidationError})
        SerialStats.append({"Unmatched Responses": self.UnmatchedError})
        SerialStats.append({"Cancelled Requests": self.Cancelled})

        Delta = datetime.datetime.now() - self.ModbusStartTime
        if Delta.total_seconds() > 0:
            PacketsPerSecond = float(self.TxPacketCount + self.RxPacketCount) / float(
                Delta.total_seconds()
            )
            SerialStats.append({"Packets Per Second": "%.2f" % (PacketsPerSecond)})

        if self.RxPacketCount:
            AvgTransactionTime = float(
                self.TotalElapsedPacketeTime / self.RxPacketCount
            )
            SerialStats.append(
                {"Average Transaction Time": "%.4f sec" % (AvgTransactionTime)}
            )

        return SerialStats

    def ResetCommStats(self) -> None:
        """Resets communication statistics."""
        self.RxPacketCount = 0
        self.TxPacketCount = 0
        self.CrcError = 0
        self.ComTimoutError = 0
        self.ComValidationError = 0
        self.UnmatchedError = 0
        self.Cancelled = 0
        self.ModbusException = 0
        self.ExceptionCounts = {}
        self.TotalElapsedPacketeTime = 0.0
        self.ModbusStartTime = datetime.datetime.now()  # used for com metrics
