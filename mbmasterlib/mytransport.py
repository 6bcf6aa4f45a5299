#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: mytransport.py
# PURPOSE: Base byte link used by the modbus master
#
#  AUTHOR: Jason G Yates
#    DATE: 19-Apr-2018
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for the byte link shared by the serial and TCP transports.

`LinkDevice` owns the receive buffer and the background read thread. A
subclass only has to open, read, write and close its device. The master
talks to every transport through `Open`, `Close`, `Send`, `Receive` and
`Flush`.
"""

import datetime
import os
import threading
import time
from typing import Any, Dict, List, Optional

from mbmasterlib.modbuserrors import ModbusTimeout, RequestCancelled, TransportError
from mbmasterlib.mylog import SetupLogger
from mbmasterlib.mysupport import MySupport
from mbmasterlib.mythread import MyThread
from mbmasterlib.program_defaults import ProgramDefaults


# ------------ LinkDevice class -------------------------------------------------
class LinkDevice(MySupport):
    """
    Buffered byte link with a background reader.

    Attributes:
        DeviceName (str): Name used in log messages.
        Buffer (bytearray): Bytes received and not yet consumed.
        BufferLock (threading.Lock): Lock for thread-safe buffer access.
        DiscardedBytes (int): Bytes dropped by `Flush`.
        Restarts (int): Number of times the device was reopened.
        LinkStartTime (datetime.datetime): Time when link stats were last reset.
        PollInterval (float): Seconds between buffer checks in `Receive`.
        ReconnectDelay (float): Seconds the reader waits before retrying a lost link.
        IsOpen (bool): Flag indicating if the link is open.
    """

    ReadThreadName = "LinkReadThread"

    def __init__(
        self,
        log: Any = None,
        loglocation: str = ProgramDefaults.LogPath,
        logname: str = "mytransport",
    ):
        """
        Initializes the link.

        Args:
            log (Any, optional): Logger instance. If None a log file is created.
            loglocation (str, optional): Path for logs. Defaults to ProgramDefaults.LogPath.
            logname (str, optional): Logger and log file name.
        """
        super(LinkDevice, self).__init__()
        self.DeviceName = "link"
        self.Buffer = bytearray()
        self.BufferLock = threading.Lock()
        self.DiscardedBytes = 0
        self.Restarts = 0
        self.RxBytes = 0
        self.TxBytes = 0
        self.LinkStartTime = datetime.datetime.now()  # used for com metrics
        self.PollInterval = 0.01
        self.ReconnectDelay = 10.0
        self.IsOpen = False
        self.loglocation = loglocation

        # log errors in this module to a file
        if log is None:
            self.log = SetupLogger(logname, os.path.join(self.loglocation, logname + ".log"))
        else:
            self.log = log

    # ------------ device hooks, implemented by subclasses ----------------------
    def Connect(self) -> None:
        raise NotImplementedError

    def Disconnect(self) -> None:
        raise NotImplementedError

    def Read(self) -> bytes:
        raise NotImplementedError

    def Write(self, data: bytes) -> None:
        raise NotImplementedError

    def Restart(self) -> None:
        """Reopens the device after a read error."""
        self.Restarts += 1

    def CheckLink(self) -> bool:
        """
        Called by the reader before each read.

        Returns:
            bool: True if the device can be read now.
        """
        return True

    def FlushDevice(self) -> None:
        """Discards data held by the device driver."""
        return

    # ------------ LinkDevice::Open ---------------------------------------------
    def Open(self) -> None:
        """
        Opens the device and starts the read thread.

        Raises:
            TransportError: If the device can not be opened.
        """
        if self.IsOpen:
            return
        self.Connect()
        self.IsOpen = True
        self.Flush()
        self.StartReadThread()

    # ------------ LinkDevice::Close --------------------------------------------
    def Close(self) -> None:
        """Stops the read thread and closes the device."""
        if not self.IsOpen:
            return
        self.IsOpen = False
        if self.ReadThreadName in self.Threads:
            self.KillThread(self.ReadThreadName)
            del self.Threads[self.ReadThreadName]
        try:
            self.Disconnect()
        except Exception as e1:
            self.LogErrorLine("Error in %s:Close : " % self.DeviceName + str(e1))
        self.Flush()

    def StartReadThread(self) -> MyThread:
        """
        Starts the read thread to monitor incoming data.

        Returns:
            MyThread: The started thread object.
        """
        self.Threads[self.ReadThreadName] = MyThread(
            self.ReadThread, Name=self.ReadThreadName
        )
        return self.Threads[self.ReadThreadName]

    def ReadThread(self) -> None:
        """
        The main loop for the read thread.

        Appends everything read from the device to `Buffer`. On a device
        error the device is restarted and reading continues.
        """
        while True:
            try:
                while True:
                    if not self.CheckLink():
                        if self.WaitForExit(self.ReadThreadName, self.ReconnectDelay):
                            return
                        continue

                    data = self.Read()
                    if data:
                        with self.BufferLock:
                            self.Buffer.extend(data)
                            self.RxBytes += len(data)

                    if self.IsStopSignaled(self.ReadThreadName):
                        return

            except Exception as e1:
                self.LogErrorLine(
                    "Resetting %s:ReadThread Error: " % self.DeviceName + str(e1)
                )
                if self.IsStopSignaled(self.ReadThreadName):
                    return
                self.Restart()

    # ------------ LinkDevice::Send ---------------------------------------------
    def Send(self, data: bytes) -> None:
        """
        Writes a complete frame to the link.

        Args:
            data (bytes): The frame.

        Raises:
            TransportError: If the link is closed or the write fails.
        """
        if not self.IsOpen:
            raise TransportError("%s: link is not open" % self.DeviceName)
        try:
            self.Write(bytes(data))
            self.TxBytes += len(data)
        except TransportError:
            raise
        except Exception as e1:
            self.LogErrorLine("Error in %s:Write : " % self.DeviceName + str(e1))
            raise TransportError("%s: write failed: %s" % (self.DeviceName, str(e1))) from e1

    # ------------ LinkDevice::Receive ------------------------------------------
    def Receive(
        self,
        count: int,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> bytes:
        """
        Waits until `count` bytes are buffered and removes them.

        Args:
            count (int): Number of bytes wanted.
            timeout (float): Seconds to wait.
            cancel (threading.Event, optional): Set by another thread to abort the wait.

        Returns:
            bytes: Exactly `count` bytes.

        Raises:
            ModbusTimeout: Not enough bytes before the deadline. The buffer is flushed.
            RequestCancelled: `cancel` was set. The buffer is flushed.
        """
        deadline = time.monotonic() + max(timeout, 0.0)
        while True:
            with self.BufferLock:
                if len(self.Buffer) >= count:
                    data = bytes(self.Buffer[:count])
                    del self.Buffer[:count]
                    return data
                received = len(self.Buffer)

            if cancel is not None and cancel.is_set():
                self.Flush()
                raise RequestCancelled("%s: receive cancelled" % self.DeviceName)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.Flush()
                raise ModbusTimeout(
                    "%s: timeout waiting for %d bytes, %d received"
                    % (self.DeviceName, count, received)
                )

            if cancel is not None:
                cancel.wait(min(self.PollInterval, remaining))
            else:
                time.sleep(min(self.PollInterval, remaining))

    def PendingBytes(self) -> int:
        """Returns the number of buffered bytes not yet consumed."""
        with self.BufferLock:
            return len(self.Buffer)

    def Flush(self) -> None:
        """Discards the device buffers and the internal receive buffer."""
        try:
            if self.IsOpen:
                self.FlushDevice()
        except Exception as e1:
            self.LogErrorLine("Error in %s:Flush : " % self.DeviceName + str(e1))
        with self.BufferLock:  # will block if lock is already held
            self.DiscardedBytes += len(self.Buffer)
            del self.Buffer[:]

    def ResetLinkStats(self) -> None:
        self.DiscardedBytes = 0
        self.Restarts = 0
        self.RxBytes = 0
        self.TxBytes = 0
        self.LinkStartTime = datetime.datetime.now()  # used for com metrics

    def GetLinkStats(self) -> List[Dict[str, Any]]:
        """
        Retrieves link statistics.

        Returns:
            List[Dict[str, Any]]: A list of dictionaries containing stats.
        """
        LinkStats = []
        LinkStats.append({"Device": self.DeviceName})
        LinkStats.append({"Bytes": "Tx: %d, Rx: %d" % (self.TxBytes, self.RxBytes)})
        LinkStats.append({"Discarded Bytes": self.DiscardedBytes})
        LinkStats.append({"Restarts": self.Restarts})
        return LinkStats
