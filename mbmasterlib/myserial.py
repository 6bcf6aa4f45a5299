#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: myserial.py
# PURPOSE: Serial link for modbus RTU
#
#  AUTHOR: Jason G Yates
#    DATE: 19-Apr-2018
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for serial communication management.

This module defines the `SerialDevice` class, which carries Modbus RTU frames
over a serial port using pySerial. It has no protocol knowledge.
"""

from typing import Any, Optional, Union

import serial

from mbmasterlib.modbuserrors import InvalidArgument, TransportError
from mbmasterlib.mytransport import LinkDevice
from mbmasterlib.program_defaults import ProgramDefaults

ParityMap = {
    "none": serial.PARITY_NONE,
    "odd": serial.PARITY_ODD,
    "even": serial.PARITY_EVEN,
    0: serial.PARITY_NONE,
    1: serial.PARITY_ODD,
    2: serial.PARITY_EVEN,
}

DataBitsMap = {7: serial.SEVENBITS, 8: serial.EIGHTBITS}

StopBitsMap = {
    1: serial.STOPBITS_ONE,
    1.5: serial.STOPBITS_ONE_POINT_FIVE,
    2: serial.STOPBITS_TWO,
}


# ------------ SerialDevice class -----------------------------------------------
class SerialDevice(LinkDevice):
    """
    A class for managing serial device communication.

    Attributes:
        DeviceName (str): Name of the serial device (e.g., '/dev/serial0').
        BaudRate (int): Communication speed.
        SerialDevice (serial.Serial): The underlying pySerial object.
    """

    ReadThreadName = "SerialReadThread"

    def __init__(
        self,
        name: str = ProgramDefaults.SerialPort,
        rate: int = ProgramDefaults.SerialRate,
        log: Any = None,
        Parity: Optional[Union[int, str]] = None,
        databits: int = 8,
        stopbits: Union[int, float] = 1,
        RtsCts: bool = False,
        loglocation: str = ProgramDefaults.LogPath,
    ):
        """
        Initializes the SerialDevice. The port is opened by `Open`.

        Args:
            name (str, optional): Serial port name. Defaults to "/dev/serial0".
            rate (int, optional): Baud rate. Defaults to 9600.
            log (Any, optional): Logger instance. Defaults to None.
            Parity (Union[int, str], optional): "none", "odd", "even" or
                0=None, 1=Odd, 2=Even. Defaults to None (no parity).
            databits (int, optional): 7 or 8. Defaults to 8.
            stopbits (Union[int, float], optional): 1, 1.5 or 2. Defaults to 1.
            RtsCts (bool, optional): Enable hardware flow control. Defaults to False.
            loglocation (str, optional): Path for logs. Defaults to ProgramDefaults.LogPath.

        Raises:
            InvalidArgument: If a line setting is not supported.
        """
        super(SerialDevice, self).__init__(
            log=log, loglocation=loglocation, logname="myserial"
        )

        self.DeviceName = name
        self.BaudRate = rate

        if isinstance(Parity, str):
            Parity = Parity.lower()
        if Parity is None:
            Parity = "none"
        if Parity not in ParityMap:
            raise InvalidArgument("Invalid serial parity: %s" % (Parity,))
        if databits not in DataBitsMap:
            raise InvalidArgument("Invalid serial data bits: %s" % (databits,))
        if stopbits not in StopBitsMap:
            raise InvalidArgument("Invalid serial stop bits: %s" % (stopbits,))
        if not isinstance(rate, int) or isinstance(rate, bool) or rate <= 0:
            raise InvalidArgument("Invalid serial rate: %s" % (rate,))

        if self.VersionTuple(serial.__version__) < self.VersionTuple("3.3"):
            self.SerialDevice = serial.Serial()
        else:
            # exclusive access for newer pySerial versions
            self.SerialDevice = serial.Serial(exclusive=True)

        self.SerialDevice.port = self.DeviceName
        self.SerialDevice.baudrate = rate
        self.SerialDevice.bytesize = DataBitsMap[databits]
        self.SerialDevice.parity = ParityMap[Parity]
        if self.SerialDevice.parity != serial.PARITY_NONE:
            self.LogError("Serial: Setting %s parity" % str(Parity).upper())
        self.SerialDevice.stopbits = StopBitsMap[stopbits]

        # small timeout so we can check if the thread should exit
        self.SerialDevice.timeout = 0.05
        self.SerialDevice.xonxoff = False  # disable software flow control
        self.SerialDevice.rtscts = RtsCts
        self.SerialDevice.dsrdtr = False  # disable hardware (DSR/DTR) flow control
        # timeout for write, return when packet sent
        self.SerialDevice.write_timeout = None

    def Connect(self) -> None:
        """
        Opens the serial port.

        Raises:
            TransportError: If the port is in use or fails to open.
        """
        if self.SerialDevice.is_open:
            raise TransportError("Serial port already open: %s" % self.DeviceName)
        try:
            self.SerialDevice.open()
        except (serial.SerialException, OSError) as e1:
            self.LogError("Error on open serial port %s: " % self.DeviceName + str(e1))
            raise TransportError(
                "Error on open serial port %s: %s" % (self.DeviceName, str(e1))
            ) from e1

    def Disconnect(self) -> None:
        if self.SerialDevice.is_open:
            self.SerialDevice.close()

    def Restart(self) -> None:
        """
        Attempts to close and reopen the serial port.
        """
        # a read error is usually "device reports readiness to read but
        # returned no data (device disconnected?)". Reopening recovers it.
        self.Restarts += 1
        try:
            self.SerialDevice.close()
        except Exception as e1:
            self.LogErrorLine("Error closing in RestartSerial:" + str(e1))
        try:
            self.SerialDevice.open()
        except Exception as e1:
            self.LogErrorLine("Error opening in RestartSerial:" + str(e1))

    def FlushDevice(self) -> None:
        self.SerialDevice.reset_input_buffer()  # discard all pending input
        self.SerialDevice.reset_output_buffer()  # abort current output

    def Read(self) -> bytes:
        """
        Reads available bytes from the serial port.

        Blocks for at most the port timeout when nothing is waiting.

        Returns:
            bytes: Data read from the port.
        """
        return self.SerialDevice.read(self.SerialDevice.in_waiting or 1)

    def Write(self, data: bytes) -> None:
        """
        Writes a frame to the serial port.

        Args:
            data (bytes): Data to write.

        Raises:
            TransportError: If fewer bytes than the frame were written.
        """
        written = self.SerialDevice.write(data)
        if written is not None and written != len(data):
            raise TransportError(
                "Serial write incomplete: %d of %d bytes" % (written, len(data))
            )
