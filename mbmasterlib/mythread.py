# -------------------------------------------------------------------------------
# PURPOSE: manage threads
#
#  AUTHOR: Jason G Yates
#    DATE: 04-Mar-2017
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for managing stoppable worker threads.

Transports read the link on a `MyThread` so the master can wait on a buffer
with a deadline instead of blocking inside the driver.
"""

import threading
from typing import Optional, Callable, Any


class MyThread:
    """
    Daemon thread with a cooperative stop signal.

    The thread function has to poll `StopSignaled()` or sleep with `Wait()`
    so it can return once `Stop()` is called.

    Attributes:
        StopEvent (threading.Event): Event used to signal the thread to stop.
        ThreadObj (threading.Thread): The underlying thread object.
    """

    def __init__(
        self,
        ThreadFunction: Callable[..., Any],
        Name: Optional[str] = None,
        start: bool = True
    ):
        """
        Initializes the MyThread instance.

        Args:
            ThreadFunction (Callable): The function to run in the thread.
            Name (str, optional): The name of the thread. Defaults to None.
            start (bool, optional): Whether to start the thread immediately.
                Defaults to True.
        """
        self.StopEvent = threading.Event()
        self.ThreadObj = threading.Thread(target=ThreadFunction, name=Name)
        self.ThreadObj.daemon = True
        if start:
            self.Start()

    def Start(self) -> None:
        """Starts the thread."""
        self.ThreadObj.start()

    def Wait(self, timeout: Optional[float] = None) -> bool:
        """
        Sleeps until the stop signal or the timeout, whichever is first.

        Args:
            timeout (float, optional): The maximum time to wait in seconds.

        Returns:
            bool: True if the stop event was set, False if the timeout occurred.
        """
        return self.StopEvent.wait(timeout)

    def Stop(self) -> None:
        """Signals the thread to stop."""
        self.StopEvent.set()

    def StopSignaled(self) -> bool:
        """
        Checks if the thread has been signaled to stop.

        Returns:
            bool: True if the stop signal is set, False otherwise.
        """
        return self.StopEvent.is_set()

    def WaitForThreadToEnd(self, Timeout: Optional[float] = None) -> None:
        """
        Waits for the thread to terminate.

        A thread cannot join itself, so a call from inside the worker returns
        immediately.

        Args:
            Timeout (float, optional): The maximum time to wait for the thread to join.
        """
        if threading.current_thread() is self.ThreadObj:
            return
        if not self.ThreadObj.is_alive():
            return
        self.ThreadObj.join(Timeout)
