#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: modbustrans.py
# PURPOSE: Modbus transaction tracking
#
#  AUTHOR: Jason G Yates
#    DATE: 18-Oct-2026
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for correlating requests and responses within one session.

Modbus TCP requests carry a transaction id that the server echoes. The
tracker hands out ids and remembers which ones are outstanding so a response
can be matched to its request by id, in any arrival order. A serial RTU link
has no ids and allows only one request in flight.

Each master owns its own tracker. Nothing here is shared between sessions.
"""

import threading
from typing import Any, Dict, Optional

from mbmasterlib.modbusbase import ModbusBase, MODE_RTU, MODE_TCP
from mbmasterlib.modbuserrors import InvalidArgument, SessionBusy, UnmatchedResponse
from mbmasterlib.modbusmsg import Request
from mbmasterlib.mycommon import MyCommon


# ------------ TransactionTracker class -----------------------------------------
class TransactionTracker(MyCommon):
    """
    Per session transaction id counter and in-flight bookkeeping.

    Attributes:
        Mode (str): MODE_RTU or MODE_TCP.
        TransactionID (int): The next id `Allocate` will return.
        OutstandingRequests (Dict[int, Request]): TCP requests awaiting a response.
        CurrentRequest (Optional[Request]): The RTU request in flight, if any.
        TrackerLock (threading.Lock): Guards all of the above.
    """

    def __init__(self, mode: str = MODE_TCP, log: Any = None):
        """
        Initializes the tracker.

        Args:
            mode (str, optional): MODE_RTU or MODE_TCP. Defaults to MODE_TCP.
            log (Any, optional): Logger instance.
        """
        super(TransactionTracker, self).__init__()
        if mode not in (MODE_RTU, MODE_TCP):
            raise InvalidArgument("Unknown transport mode: %s" % (mode,))
        self.log = log
        self.Mode = mode
        self.TransactionID = 0
        self.OutstandingRequests: Dict[int, Request] = {}
        self.CurrentRequest: Optional[Request] = None
        self.TrackerLock = threading.Lock()

    def Allocate(self) -> int:
        """
        Returns the next Modbus TCP transaction id.

        The counter wraps from 0xFFFF back to 0.

        Returns:
            int: The allocated id.
        """
        with self.TrackerLock:
            ID = self.TransactionID
            self.TransactionID = (self.TransactionID + 1) & ModbusBase.MAX_TRANSACTION_ID
            return ID

    def BeginRequest(self, request: Request) -> None:
        """
        Marks a request as in flight.

        Args:
            request (Request): The request about to be sent.

        Raises:
            SessionBusy: RTU already has a request in flight, or the TCP
                transaction id is already outstanding.
        """
        with self.TrackerLock:
            if self.Mode == MODE_RTU:
                if self.CurrentRequest is not None:
                    raise SessionBusy("RTU request already outstanding")
                self.CurrentRequest = request
                return

            if request.transaction_id is None:
                raise InvalidArgument("Modbus TCP request needs a transaction id")
            if request.transaction_id in self.OutstandingRequests:
                raise SessionBusy(
                    "Transaction id %04x already outstanding" % request.transaction_id
                )
            self.OutstandingRequests[request.transaction_id] = request

    def EndRequest(self, request: Request) -> None:
        """
        Clears a request after it is decoded, timed out, cancelled or failed.

        Args:
            request (Request): The request passed to `BeginRequest`.
        """
        with self.TrackerLock:
            if self.Mode == MODE_RTU:
                if self.CurrentRequest == request:
                    self.CurrentRequest = None
                return
            if self.OutstandingRequests.get(request.transaction_id) == request:
                del self.OutstandingRequests[request.transaction_id]

    def Match(self, transaction_id: int) -> Request:
        """
        Finds the outstanding TCP request for a received transaction id.

        Args:
            transaction_id (int): Transaction id from the response header.

        Returns:
            Request: The matching outstanding request.

        Raises:
            UnmatchedResponse: If no outstanding request has this id.
        """
        with self.TrackerLock:
            request = self.OutstandingRequests.get(transaction_id)
        if request is None:
            self.LogError("ModbusTCP transaction ID not outstanding: %04x" % transaction_id)
            raise UnmatchedResponse(
                "No outstanding request for transaction id %04x" % transaction_id
            )
        return request

    def IsBusy(self) -> bool:
        """True if any request is in flight."""
        return self.Outstanding() > 0

    def Outstanding(self) -> int:
        """
        Returns the number of requests in flight.

        Returns:
            int: 0 or 1 for RTU, any count for TCP.
        """
        with self.TrackerLock:
            if self.Mode == MODE_RTU:
                return 0 if self.CurrentRequest is None else 1
            return len(self.OutstandingRequests)

    def Reset(self) -> None:
        """Drops all in-flight bookkeeping. The id counter is kept."""
        with self.TrackerLock:
            self.OutstandingRequests.clear()
            self.CurrentRequest = None
