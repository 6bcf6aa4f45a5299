#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: mymodbus.py
# PURPOSE: Modbus master session
#
#  AUTHOR: Jason G Yates
#    DATE: 19-Apr-2018
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for Modbus master transactions.

This module defines the `ModbusMaster` class, which extends `ModbusBase` to
run read transactions against one slave link. A master owns its transport,
its transaction tracker, the lock serializing exchanges on the link, its
statistics and its observers. It supports Modbus RTU over a serial port and
Modbus TCP.

Example:

    with ModbusMaster(mode="tcp", host="192.168.1.20") as master:
        registers = master.ReadHoldingRegisters(0x006B, 3)
"""

import datetime
import os
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Union

from mbmasterlib.modbusbase import ModbusBase, MODE_RTU, MODE_TCP, MODES
from mbmasterlib.modbusdecode import (
    CheckMBAPHeader,
    DecodeResponse,
    ExceptionResponse,
    RTUFrameLength,
)
from mbmasterlib.modbuserrors import (
    FrameCorruption,
    InvalidArgument,
    MalformedResponse,
    ModbusError,
    ModbusTimeout,
    ProtocolMismatch,
    RequestCancelled,
    SlaveException,
    TransportError,
    UnmatchedResponse,
)
from mbmasterlib.modbusframe import BuildFrame, ParseMBAPHeader
from mbmasterlib.modbusmsg import BuildRequest, DescribeRequest, Request
from mbmasterlib.modbustrans import TransactionTracker
from mbmasterlib.myconfig import MyConfig
from mbmasterlib.mylog import SetupLogger
from mbmasterlib.myserial import DataBitsMap, ParityMap, SerialDevice, StopBitsMap
from mbmasterlib.mytcp import TCPDevice
from mbmasterlib.program_defaults import ProgramDefaults


# ------------ ModbusMaster class -----------------------------------------------
class ModbusMaster(ModbusBase):
    """
    A Modbus master session.

    Settings come from keyword arguments, then from the `[mbmaster]` section
    of a config file, then from `ProgramDefaults`.

    Attributes:
        Mode (str): MODE_RTU or MODE_TCP.
        UnitID (int): Default unit id for reads.
        Timeout (float): Response timeout in seconds.
        Slave (Any): The transport (SerialDevice, TCPDevice or injected).
        Tracker (TransactionTracker): Transaction ids and in-flight requests.
        CommAccessLock (threading.RLock): Serializes exchanges on the link.
        CancelEvent (threading.Event): Set by `Cancel` to abort a wait.
        Observers (List[Callable]): Callbacks receiving traffic events.
        IsStopping (bool): Set by `Close`.
    """

    def __init__(
        self,
        config: Union[MyConfig, str, None] = None,
        mode: Optional[str] = None,
        port: Optional[str] = None,
        rate: Optional[int] = None,
        parity: Optional[str] = None,
        databits: Optional[int] = None,
        stopbits: Optional[float] = None,
        host: Optional[str] = None,
        tcp_port: Optional[int] = None,
        unit_id: Optional[int] = None,
        timeout: Optional[float] = None,
        debug: Optional[bool] = None,
        loglocation: Optional[str] = None,
        log: Any = None,
        transport: Any = None,
    ):
        """
        Initializes the master. The link is not opened until `Open`.

        Args:
            config (Union[MyConfig, str], optional): Config object or path to
                an INI file with an `[mbmaster]` section.
            mode (str, optional): "rtu" or "tcp".
            port (str, optional): Serial port name.
            rate (int, optional): Serial baud rate.
            parity (str, optional): "none", "odd" or "even".
            databits (int, optional): 7 or 8.
            stopbits (float, optional): 1, 1.5 or 2.
            host (str, optional): Modbus TCP host.
            tcp_port (int, optional): Modbus TCP port.
            unit_id (int, optional): Default unit id, 0 to 255.
            timeout (float, optional): Response timeout in seconds.
            debug (bool, optional): Log every frame.
            loglocation (str, optional): Directory for mbmaster.log.
            log (Any, optional): Logger instance to use instead of mbmaster.log.
            transport (Any, optional): Link object to use instead of creating one.

        Raises:
            InvalidArgument: If a setting is invalid.
        """
        self.Slave = None
        super(ModbusMaster, self).__init__()

        if isinstance(config, str):
            config = MyConfig(filename=config, section=ProgramDefaults.ConfSection)
        self.config = config

        self.loglocation = self.GetSetting(loglocation, "loglocation", str, ProgramDefaults.LogPath)
        # log errors in this module to a file
        if log is None:
            self.log = SetupLogger("mbmaster", os.path.join(self.loglocation, "mbmaster.log"))
        else:
            self.log = log
        self.console = SetupLogger("mbmaster_console", log_file="", stream=True)
        if self.config is not None and self.config.log is None:
            self.config.log = self.log

        try:
            self.debug = self.GetSetting(debug, "debug", bool, False)
            self.Mode = str(self.GetSetting(mode, "mode", str, MODE_RTU)).lower()
            self.DeviceName = self.GetSetting(port, "port", str, ProgramDefaults.SerialPort)
            self.Rate = self.GetSetting(rate, "serial_rate", int, ProgramDefaults.SerialRate)
            self.Parity = str(self.GetSetting(parity, "serial_parity", str, "none")).lower()
            self.DataBits = self.GetSetting(databits, "databits", int, 8)
            self.StopBits = self.GetSetting(stopbits, "stopbits", float, 1)
            self.Host = self.GetSetting(host, "host", str, ProgramDefaults.LocalHost)
            self.TCPPort = self.GetSetting(tcp_port, "tcp_port", int, ProgramDefaults.ModbusTCPPort)
            self.UnitID = self.GetSetting(unit_id, "unit_id", int, ProgramDefaults.UnitID)
            self.Timeout = self.GetSetting(timeout, "timeout", float, ProgramDefaults.ResponseTimeout)
            self.CheckSettings()
        except InvalidArgument as e1:
            self.LogError("Error in ModbusMaster settings: " + str(e1))
            raise

        self.CommAccessLock = threading.RLock()  # serializes exchanges on the link
        self.CancelEvent = threading.Event()
        self.Observers: List[Callable[[str, Dict[str, Any]], None]] = []
        self.IsStopping = False
        self.Tracker = TransactionTracker(mode=self.Mode, log=self.log)

        if transport is not None:
            self.Slave = transport
        elif self.Mode == MODE_TCP:
            self.Slave = TCPDevice(
                host=self.Host, port=self.TCPPort, log=self.log, loglocation=self.loglocation
            )
        else:
            self.Slave = SerialDevice(
                name=self.DeviceName,
                rate=self.Rate,
                log=self.log,
                Parity=self.Parity,
                databits=self.DataBits,
                stopbits=self.StopBits,
                loglocation=self.loglocation,
            )

    # ------------ ModbusMaster::GetSetting --------------------------------------
    def GetSetting(self, value: Any, Entry: str, return_type: type, default: Any) -> Any:
        """
        Returns a keyword value, else the config value, else the default.

        Raises:
            InvalidArgument: If the config file has the option but its value
                does not parse as `return_type`.
        """
        if value is not None:
            return value
        if self.config is None or not self.config.HasOption(Entry):
            return default
        Value = self.config.ReadValue(Entry, return_type=return_type, default=None, NoLog=True)
        if Value is None:
            raise InvalidArgument("Invalid %s: %s" % (Entry, self.config.ReadValue(Entry)))
        return Value

    # ------------ ModbusMaster::CheckSettings -----------------------------------
    def CheckSettings(self) -> None:
        """
        Validates the session settings.

        Raises:
            InvalidArgument: If a setting is out of range.
        """
        if self.Mode not in MODES:
            raise InvalidArgument("Invalid mode: %s" % self.Mode)
        if self.Parity not in ParityMap:
            raise InvalidArgument("Invalid serial parity: %s" % self.Parity)
        if self.DataBits not in DataBitsMap:
            raise InvalidArgument("Invalid serial data bits: %s" % (self.DataBits,))
        if self.StopBits not in StopBitsMap:
            raise InvalidArgument("Invalid serial stop bits: %s" % (self.StopBits,))
        if not isinstance(self.Rate, int) or isinstance(self.Rate, bool) or self.Rate <= 0:
            raise InvalidArgument("Invalid serial rate: %s" % (self.Rate,))
        if not isinstance(self.TCPPort, int) or not (0 < self.TCPPort <= 0xFFFF):
            raise InvalidArgument("Invalid TCP port: %s" % (self.TCPPort,))
        if (
            not isinstance(self.UnitID, int)
            or isinstance(self.UnitID, bool)
            or self.UnitID < self.MIN_UNIT_ID
            or self.UnitID > self.MAX_UNIT_ID
        ):
            raise InvalidArgument("Invalid unit id: %s" % (self.UnitID,))
        try:
            self.Timeout = float(self.Timeout)
        except (TypeError, ValueError):
            raise InvalidArgument("Invalid timeout: %s" % (self.Timeout,))
        if self.Timeout <= 0:
            raise InvalidArgument("Invalid timeout: %s" % (self.Timeout,))

    # ------------ ModbusMaster::Open --------------------------------------------
    def Open(self) -> None:
        """
        Opens the link.

        Raises:
            TransportError: If the link can not be opened.
        """
        with self.CommAccessLock:
            try:
                self.Slave.Open()
            except TransportError as e1:
                self.LogError("Error opening modbus device: " + str(e1))
                self.LogConsole("Error opening modbus device: " + str(e1))
                raise
            self.IsStopping = False
            self.LogDebug("Modbus master open, mode %s" % self.Mode)

    # ------------ ModbusMaster::Close -------------------------------------------
    def Close(self) -> None:
        """
        Closes the Modbus master and its link.

        A wait in progress on another thread is cancelled.
        """
        self.IsStopping = True
        self.Cancel()
        with self.CommAccessLock:
            self.Slave.Close()
            self.Tracker.Reset()

    def __enter__(self) -> "ModbusMaster":
        self.Open()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.Close()

    # ------------ ModbusMaster::Cancel ------------------------------------------
    def Cancel(self) -> None:
        """
        Aborts the request waiting for a response, if any.

        The waiting caller gets `RequestCancelled`. Safe to call from any thread.
        """
        self.CancelEvent.set()

    def Flush(self) -> None:
        """
        Flushes the underlying communication device.
        """
        with self.CommAccessLock:
            self.Slave.Flush()

    # ------------ observers -----------------------------------------------------
    def AddObserver(self, callback: Callable[[str, Dict[str, Any]], None]) -> None:
        """
        Registers a traffic observer.

        The callback is called as callback(event, fields) where event is
        "request", "response" or "error" and fields is a dict of the encoded
        or decoded values.

        Args:
            callback (Callable): The observer.
        """
        with self.CriticalLock:
            if callback not in self.Observers:
                self.Observers.append(callback)

    def RemoveObserver(self, callback: Callable[[str, Dict[str, Any]], None]) -> None:
        with self.CriticalLock:
            if callback in self.Observers:
                self.Observers.remove(callback)

    def NotifyObservers(self, event: str, fields: Dict[str, Any]) -> None:
        with self.CriticalLock:
            Observers = list(self.Observers)
        for callback in Observers:
            try:
                callback(event, dict(fields))
            except Exception as e1:
                self.LogErrorLine("Error in observer callback for %s: " % event + str(e1))

    # ------------ typed reads ---------------------------------------------------
    def ReadCoils(self, address: int, quantity: int, unit_id: Optional[int] = None) -> List[bool]:
        """
        Reads coil status (function 0x01).

        Args:
            address (int): First coil, 0 to 0xFFFF.
            quantity (int): Number of coils, 1 to 2000.
            unit_id (int, optional): Unit id. Defaults to the session unit id.

        Returns:
            List[bool]: One value per coil.

        Raises:
            SlaveException: The slave answered with an exception response.
        """
        return self.ReadValues(self.MBUS_CMD_READ_COILS, address, quantity, unit_id)

    def ReadDiscreteInputs(
        self, address: int, quantity: int, unit_id: Optional[int] = None
    ) -> List[bool]:
        """
        Reads discrete input status (function 0x02).

        Args:
            address (int): First input, 0 to 0xFFFF.
            quantity (int): Number of inputs, 1 to 2000.
            unit_id (int, optional): Unit id. Defaults to the session unit id.

        Returns:
            List[bool]: One value per input.
        """
        return self.ReadValues(self.MBUS_CMD_READ_DISCRETE_INPUTS, address, quantity, unit_id)

    def ReadHoldingRegisters(
        self, address: int, quantity: int, unit_id: Optional[int] = None
    ) -> List[int]:
        """
        Reads holding registers (function 0x03).

        Args:
            address (int): First register, 0 to 0xFFFF.
            quantity (int): Number of registers, 1 to 125.
            unit_id (int, optional): Unit id. Defaults to the session unit id.

        Returns:
            List[int]: Unsigned 16 bit register values.
        """
        return self.ReadValues(self.MBUS_CMD_READ_HOLDING_REGS, address, quantity, unit_id)

    def ReadInputRegisters(
        self, address: int, quantity: int, unit_id: Optional[int] = None
    ) -> List[int]:
        """
        Reads input registers (function 0x04).

        Args:
            address (int): First register, 0 to 0xFFFF.
            quantity (int): Number of registers, 1 to 125.
            unit_id (int, optional): Unit id. Defaults to the session unit id.

        Returns:
            List[int]: Unsigned 16 bit register values.
        """
        return self.ReadValues(self.MBUS_CMD_READ_INPUT_REGS, address, quantity, unit_id)

    def ReadValues(
        self, function: int, address: int, quantity: int, unit_id: Optional[int] = None
    ) -> List[Any]:
        result = self.ProcessTransaction(function, address, quantity, unit_id=unit_id)
        if isinstance(result, ExceptionResponse):
            raise SlaveException(result.function, result.code, result.text)
        return result.values

    # ------------ ModbusMaster::ProcessTransaction ------------------------------
    def ProcessTransaction(
        self, function: int, address: int, quantity: int, unit_id: Optional[int] = None
    ):
        """
        Runs one read transaction.

        Args:
            function (int): Read function code, 0x01 to 0x04.
            address (int): Starting address.
            quantity (int): Number of elements.
            unit_id (int, optional): Unit id. Defaults to the session unit id.

        Returns:
            Union[ReadResult, ExceptionResponse]: The decoded response.

        Raises:
            InvalidArgument: Bad parameters, raised before any I/O.
            SessionBusy: A request is already outstanding.
            ModbusError: Any link or protocol failure, unmodified.
        """
        if unit_id is None:
            unit_id = self.UnitID
        try:
            request = BuildRequest(function, address, quantity, unit_id)
        except InvalidArgument as e1:
            self.LogError("Invalid request: " + str(e1))
            raise

        with self.CommAccessLock:  # this lock should allow calls from multiple threads
            # a Close that lands before this clear has already set IsStopping
            self.CancelEvent.clear()
            if self.IsStopping:
                raise TransportError("Modbus master is closed")
            if self.Mode == MODE_TCP:
                request = request._replace(transaction_id=self.Tracker.Allocate())
            try:
                self.Tracker.BeginRequest(request)
            except ModbusError as e1:
                self.LogError("Unable to start request: " + str(e1))
                raise
            try:
                return self.ProcessOneTransaction(request)
            finally:
                self.Tracker.EndRequest(request)

    # ------------ ModbusMaster::ProcessOneTransaction ---------------------------
    def ProcessOneTransaction(self, request: Request):
        """
        Sends one request and waits for its response. Called with the lock held.

        Args:
            request (Request): The request, registered with the tracker.

        Returns:
            Union[ReadResult, ExceptionResponse]: The decoded response.
        """
        Fields = DescribeRequest(request)
        MasterPacket = BuildFrame(request, self.Mode)

        if self.Slave.PendingBytes():
            self.LogError("Flushing, unexpected data. Likely timeout.")
            self.Slave.Flush()

        self.NotifyObservers(
            "request", self.MergeDicts(Fields, {"frame": self.HexString(MasterPacket)})
        )
        self.LogDebug("Master: " + self.HexString(MasterPacket))

        SentTime = datetime.datetime.now()
        try:
            self.Slave.Send(MasterPacket)
            self.TxPacketCount += 1
            SlavePacket = self.ReceiveResponse(request, time.monotonic() + self.Timeout)
            self.LogDebug("Slave: " + self.HexString(SlavePacket))
            result = DecodeResponse(SlavePacket, request, self.Mode)
        except ModbusError as e1:
            self.CountError(e1)
            self.LogError(
                "Error in transaction %s at %04x: " % (Fields["name"], request.address), e1
            )
            self.LogHexList(MasterPacket, prefix="Master")
            self.Slave.Flush()
            self.NotifyObservers(
                "error",
                self.MergeDicts(
                    Fields, {"error": e1.__class__.__name__, "message": str(e1)}
                ),
            )
            raise

        self.RxPacketCount += 1
        self.TotalElapsedPacketeTime += self.MillisecondsElapsed(SentTime) / 1000

        if isinstance(result, ExceptionResponse):
            self.CountException(result.code)
            self.LogError(
                "Modbus exception %02x (%s) for %s at %04x"
                % (result.code, result.text, Fields["name"], request.address)
            )
            Fields = self.MergeDicts(
                Fields, {"exception_code": result.code, "exception": result.text}
            )
        else:
            Fields = self.MergeDicts(Fields, {"values": list(result.values)})
        self.NotifyObservers(
            "response", self.MergeDicts(Fields, {"frame": self.HexString(SlavePacket)})
        )
        return result

    # ------------ ModbusMaster::ReceiveResponse ---------------------------------
    def ReceiveResponse(self, request: Request, deadline: float) -> bytes:
        """
        Reads one complete response frame from the link.

        RTU reads the first 3 bytes, then the rest of the frame, no longer
        than a correct reply to the request. TCP reads the MBAP header, checks
        it against the tracker, then reads the number of bytes its length
        field declares.

        Args:
            request (Request): The outstanding request.
            deadline (float): time.monotonic() value when the wait ends.

        Returns:
            bytes: The complete frame.
        """
        if self.Mode == MODE_RTU:
            Header = self.ReceiveBytes(3, deadline)
            Length = RTUFrameLength(Header, request)
            Frame = Header + self.ReceiveBytes(Length - len(Header), deadline)
            # a longer reply is taken only if the rest has already arrived
            Extra = min(RTUFrameLength(Header) - Length, self.Slave.PendingBytes())
            if Extra > 0:
                Frame += self.Slave.Receive(Extra, 0, cancel=self.CancelEvent)
            return Frame

        Header = self.ReceiveBytes(self.MBAP_HEADER_SIZE, deadline)
        MBAP = ParseMBAPHeader(Header)
        if MBAP.protocol_id == self.MODBUS_PROTOCOL_ID:
            request = self.Tracker.Match(MBAP.transaction_id)
        CheckMBAPHeader(MBAP, request)
        return Header + self.ReceiveBytes(MBAP.length - self.MBUS_ADDRESS_SIZE, deadline)

    def ReceiveBytes(self, count: int, deadline: float) -> bytes:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            self.Slave.Flush()
            raise ModbusTimeout("Timeout waiting for %d response bytes" % count)
        return self.Slave.Receive(count, remaining, cancel=self.CancelEvent)

    def CountError(self, Error: ModbusError) -> None:
        """
        Updates the statistics counter for a failed transaction.

        Args:
            Error (ModbusError): The error about to be raised.
        """
        if isinstance(Error, ModbusTimeout):
            self.ComTimoutError += 1
        elif isinstance(Error, FrameCorruption):
            self.CrcError += 1
        elif isinstance(Error, UnmatchedResponse):
            self.UnmatchedError += 1
        elif isinstance(Error, (ProtocolMismatch, MalformedResponse)):
            self.ComValidationError += 1
        elif isinstance(Error, RequestCancelled):
            self.Cancelled += 1

    def MillisecondsElapsed(self, ReferenceTime: datetime.datetime) -> float:
        """
        Calculates milliseconds elapsed since ReferenceTime.

        Args:
            ReferenceTime (datetime.datetime): Start time.

        Returns:
            float: Elapsed milliseconds.
        """
        CurrentTime = datetime.datetime.now()
        Delta = CurrentTime - ReferenceTime
        return Delta.total_seconds() * 1000

    # ------------ statistics ----------------------------------------------------
    def GetCommStats(self) -> List[Dict[str, Any]]:
        """
        Retrieves communication statistics, including the link's.

        Returns:
            List[Dict[str, Any]]: List of statistics dictionaries.
        """
        SerialStats = super(ModbusMaster, self).GetCommStats()
        if hasattr(self.Slave, "GetLinkStats"):
            SerialStats.extend(self.Slave.GetLinkStats())
        if self.Mode == MODE_RTU:
            SerialStats.append({"Modbus Transport": "Serial"})
            SerialStats.append({"Serial Data Rate": "%d" % (self.Rate)})
        else:
            SerialStats.append({"Modbus Transport": "TCP"})
        return SerialStats

    def ResetCommStats(self) -> None:
        """
        Resets communication statistics.
        """
        super(ModbusMaster, self).ResetCommStats()
        if self.Slave is not None and hasattr(self.Slave, "ResetLinkStats"):
            self.Slave.ResetLinkStats()
