#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: mycommon.py
# PURPOSE: common functions in all classes
#
#  AUTHOR: Jason G Yates
#    DATE: 21-Apr-2018
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module containing common functions used across all classes in the library.

This module defines the `MyCommon` class, which serves as a base class providing
logging helpers, hex formatting of packets, and small conversion utilities.
"""

import os
import sys
from typing import Optional, Any, Dict, Tuple, List, Union


# ------------ MyCommon class -----------------------------------------------------
class MyCommon(object):
    """
    Base class providing common utility functions.

    Attributes:
        log (logging.Logger): Logger instance.
        console (logging.Logger): Console logger instance.
        Threads (Dict): Dictionary to store thread objects.
        debug (bool): Flag to enable debug logging.
    """

    def __init__(self):
        """Initializes the MyCommon instance."""
        self.log: Optional[Any] = None
        self.console: Optional[Any] = None
        self.Threads: Dict[str, Any] = {}  # Dict of mythread objects
        self.debug: bool = False

    def VersionTuple(self, value: str) -> Tuple[int, ...]:
        """
        Converts a version string to a tuple of integers.

        Args:
            value (str): The version string (e.g., "3.5").

        Returns:
            Tuple[int, ...]: A tuple of version components (e.g., (3, 5)).
        """
        value = self.removeAlpha(value)
        return tuple(map(int, (value.split("."))))

    def removeAlpha(self, inputStr: str) -> str:
        """
        Removes alphabetic characters from a string, keeping numbers and dots.

        Args:
            inputStr (str): The input string.

        Returns:
            str: The string with alphabetic characters removed.
        """
        answer = ""
        for char in inputStr:
            if not char.isalpha() and char != " " and char != "%":
                answer += char

        return answer.strip()

    def MergeDicts(self, x: Dict, y: Dict) -> Dict:
        """
        Merges two dictionaries into a new dictionary (shallow copy).

        Args:
            x (Dict): The first dictionary.
            y (Dict): The second dictionary (updates x).

        Returns:
            Dict: The merged dictionary.
        """
        z = x.copy()
        z.update(y)
        return z

    def HexString(self, data: Union[bytes, bytearray, List[int]]) -> str:
        """
        Formats a byte sequence as space separated hex pairs.

        Args:
            data (Union[bytes, bytearray, List[int]]): The bytes to format.

        Returns:
            str: e.g. "01 03 00 6b".
        """
        return " ".join("%02x" % b for b in bytearray(data))

    def LogHexList(
        self,
        listname: Union[bytes, bytearray, List[int]],
        prefix: Optional[str] = None,
        nolog: bool = False,
    ) -> str:
        """
        Formats a packet as a hex list and optionally logs it.

        Args:
            listname (Union[bytes, bytearray, List[int]]): The packet bytes.
            prefix (Optional[str], optional): Prefix for the log message.
            nolog (bool, optional): If True, does not log the message. Defaults to False.

        Returns:
            str: The formatted hex string.
        """
        outstr = "[" + ",".join("0x{:02x}".format(num) for num in bytearray(listname)) + "]"
        if prefix is not None:
            outstr = prefix + " = " + outstr

        if nolog is False:
            self.LogError(outstr)
        return outstr

    def LogConsole(self, Message: str) -> None:
        """
        Logs a message to the console.

        Args:
            Message (str): The message to log.
        """
        if self.console is not None:
            self.console.error(Message)

    def LogError(self, Message: str, Error: Optional[Exception] = None) -> None:
        """
        Logs an error message to the log file.

        Args:
            Message (str): The message to log.
            Error (Optional[Exception], optional): An exception to append.
        """
        if self.log is not None:
            if Error is not None:
                Message = Message + " : " + str(Error)
            self.log.error(Message)

    def LogErrorLine(self, Message: str, Error: Optional[Exception] = None) -> None:
        """
        Logs an error message with the source file and line number.

        Args:
            Message (str): The message to log.
            Error (Optional[Exception], optional): An exception to append.
        """
        if self.log is not None:
            if Error is not None:
                Message = Message + " : " + str(Error)
            self.log.error(Message + " : " + self.GetErrorLine())

    def LogDebug(self, Message: str, Error: Optional[Exception] = None) -> None:
        """
        Logs a debug message if debug mode is enabled.

        Args:
            Message (str): The message to log.
            Error (Optional[Exception], optional): An exception to append.
        """
        if self.debug:
            self.LogError(Message, Error)

    def GetErrorLine(self) -> str:
        """
        Retrieves the filename and line number of the current exception.

        Returns:
            str: "filename:lineno" or empty string if no exception info.
        """
        exc_type, exc_obj, exc_tb = sys.exc_info()
        if exc_tb is None:
            return ""
        else:
            fname = os.path.split(exc_tb.tb_frame.f_code.co_filename)[1]
            lineno = exc_tb.tb_lineno
            return fname + ":" + str(lineno)
