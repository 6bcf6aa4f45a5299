#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: mytcp.py
# PURPOSE: TCP link for modbus TCP
#
#  AUTHOR: Jason G Yates
#    DATE: 19-Apr-2018
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for TCP communication management.

This module defines the `TCPDevice` class, which carries Modbus TCP frames
over a socket. A dropped connection is re-established by the read thread.
"""

import socket
from typing import Any, Optional

from mbmasterlib.modbuserrors import TransportError
from mbmasterlib.mytransport import LinkDevice
from mbmasterlib.program_defaults import ProgramDefaults


# ------------ TCPDevice class --------------------------------------------------
class TCPDevice(LinkDevice):
    """
    A class for managing a Modbus TCP connection.

    Attributes:
        host (str): TCP host address.
        port (int): TCP port number.
        rxdatasize (int): Size of each socket read.
        SocketTimeout (float): Timeout for socket operations in seconds.
        Socket (socket.socket): The TCP socket object.
    """

    ReadThreadName = "TCPReadThread"

    def __init__(
        self,
        host: str = ProgramDefaults.LocalHost,
        port: int = ProgramDefaults.ModbusTCPPort,
        log: Any = None,
        loglocation: str = ProgramDefaults.LogPath,
    ):
        """
        Initializes the TCPDevice. The connection is made by `Open`.

        Args:
            host (str, optional): TCP host address. Defaults to ProgramDefaults.LocalHost.
            port (int, optional): TCP port number. Defaults to 502.
            log (Any, optional): Logger instance. Defaults to None.
            loglocation (str, optional): Path for logs. Defaults to ProgramDefaults.LogPath.
        """
        super(TCPDevice, self).__init__(log=log, loglocation=loglocation, logname="mytcp")
        self.host = host
        self.port = port
        self.DeviceName = "%s:%d" % (host, port)
        self.rxdatasize = 2000
        self.SocketTimeout = 1
        self.Socket: Optional[socket.socket] = None

    def Connect(self) -> None:
        """
        Establishes the TCP connection.

        Raises:
            TransportError: If the connection fails.
        """
        try:
            # create an INET, STREAMing socket
            self.Socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self.Socket.settimeout(self.SocketTimeout)
            # now connect to the server on our port
            self.Socket.connect((self.host, self.port))
        except OSError as e1:
            self.LogError("Error: Connect : " + str(e1))
            self.CloseSocket()
            raise TransportError(
                "Unable to make TCP connection to %s: %s" % (self.DeviceName, str(e1))
            ) from e1

    def CloseSocket(self) -> None:
        if self.Socket is not None:
            try:
                self.Socket.close()
            except OSError as e1:
                self.LogErrorLine("Error closing socket: " + str(e1))
            self.Socket = None

    def Disconnect(self) -> None:
        self.CloseSocket()

    def Restart(self) -> None:
        self.CloseSocket()

    def CheckLink(self) -> bool:
        """
        Reconnects a dropped connection.

        Returns:
            bool: True if the socket is connected.
        """
        if self.Socket is not None:
            return True
        self.Restarts += 1
        try:
            self.Connect()
        except TransportError:
            return False
        self.Flush()
        return True

    def Read(self) -> bytes:
        """
        Reads data from the socket.

        Returns:
            bytes: Data read from the socket. Empty on timeout or when the
                connection is lost.
        """
        if self.Socket is None:
            return b""
        try:
            data = self.Socket.recv(self.rxdatasize)
        except socket.timeout:
            return b""
        except OSError as err:
            self.LogErrorLine("Error in TCPDevice:Read socket error: " + str(err))
            self.CloseSocket()
            return b""
        if not data:
            self.LogError("TCPDevice:Read connection closed by " + self.DeviceName)
            self.CloseSocket()
            return b""
        return data

    def Write(self, data: bytes) -> None:
        """
        Writes a frame to the socket.

        Args:
            data (bytes): Data to write.

        Raises:
            TransportError: If there is no connection or the send fails.
        """
        if self.Socket is None:
            raise TransportError("No TCP connection to %s" % self.DeviceName)
        try:
            self.Socket.sendall(data)
        except OSError as e1:
            self.CloseSocket()
            self.LogErrorLine("Error in TCPDevice:Write : " + str(e1))
            raise TransportError("TCP send to %s failed: %s" % (self.DeviceName, str(e1))) from e1
