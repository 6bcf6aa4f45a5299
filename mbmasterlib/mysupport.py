#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: mysupport.py
# PURPOSE: support functions in major classes
#
#  AUTHOR: Jason G Yates
#    DATE: 21-Apr-2018
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module containing the `MySupport` class which provides management of the
named background threads owned by the master and its transports.
"""

import threading
from typing import Optional

from mbmasterlib.mycommon import MyCommon


class MySupport(MyCommon):
    """
    A support class for objects that own `MyThread` workers.

    Inherits from `MyCommon`.

    Attributes:
        CriticalLock (threading.Lock): A lock for critical operations.
    """

    def __init__(self):
        """Initializes the MySupport instance."""
        super(MySupport, self).__init__()
        self.CriticalLock: threading.Lock = threading.Lock()

    def KillThread(self, Name: str, CleanupSelf: bool = False) -> bool:
        """
        Stops and waits for a thread to finish.

        Args:
            Name (str): The name of the thread to kill.
            CleanupSelf (bool, optional): If True, only signals the thread
                (used when a thread ends itself). Defaults to False.

        Returns:
            bool: False if the thread was not found, True otherwise.
        """
        MyThreadObj = self.Threads.get(Name, None)
        if MyThreadObj is None:
            self.LogError("Error getting thread name in KillThread: " + Name)
            return False

        MyThreadObj.Stop()
        if not CleanupSelf:
            MyThreadObj.WaitForThreadToEnd()
        return True

    def IsStopSignaled(self, Name: str) -> bool:
        """
        Checks if a specific thread has been signaled to stop.

        Args:
            Name (str): The name of the thread.

        Returns:
            bool: True if signaled to stop, False otherwise.
        """
        Thread = self.Threads.get(Name, None)
        if Thread is None:
            self.LogError("Error getting thread name in IsStopSignaled: " + Name)
            return False

        return Thread.StopSignaled()

    def WaitForExit(self, Name: str, timeout: Optional[float] = None) -> bool:
        """
        Waits for a thread's stop event.

        Args:
            Name (str): The name of the thread.
            timeout (float, optional): Wait timeout in seconds.

        Returns:
            bool: True if stop signal received, False if timed out.
        """
        Thread = self.Threads.get(Name, None)
        if Thread is None:
            self.LogError("Error getting thread name in WaitForExit: " + Name)
            return False

        return Thread.Wait(timeout)
