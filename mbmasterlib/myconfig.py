#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: myconfig.py
# PURPOSE: Configuration file Abstraction
#
#  AUTHOR: Jason G Yates
#    DATE: 22-May-2018
#
# MODIFICATIONS:
#
# -------------------------------------------------------------------------------

"""
Module for configuration file abstraction.

This module provides the `MyConfig` class to read session settings from
standard INI files. It wraps `configparser`.
"""

import threading
from configparser import ConfigParser
from typing import Optional, Any, List, Type

from mbmasterlib.mycommon import MyCommon


class MyConfig(MyCommon):
    """
    A wrapper class for configuration file handling.

    Attributes:
        FileName (str): Path to the configuration file.
        Section (str): The default section to read.
        CriticalLock (threading.Lock): Lock guarding the parser.
        InitComplete (bool): Flag indicating if initialization was successful.
        config (ConfigParser): The underlying config parser object.
    """

    def __init__(
        self,
        filename: Optional[str] = None,
        section: Optional[str] = None,
        log: Any = None
    ):
        """
        Initializes the MyConfig object.

        Args:
            filename (str, optional): Path to the config file.
            section (str, optional): Default section name. If None the first
                section of the file is used.
            log (Any, optional): Logger instance.
        """
        super(MyConfig, self).__init__()
        self.log = log
        self.FileName = filename
        self.Section = section
        self.CriticalLock = threading.Lock()
        self.InitComplete = False
        try:
            self.config = ConfigParser(interpolation=None)

            if self.FileName:
                if not self.config.read(self.FileName):
                    self.LogError("Error in MyConfig:init: unable to read " + str(self.FileName))

            if self.Section is None:
                SectionList = self.GetSections()
                if len(SectionList):
                    self.Section = SectionList[0]

        except Exception as e1:
            self.LogErrorLine("Error in MyConfig:init: " + str(e1))
            return
        self.InitComplete = True

    def ReadString(self, text: str) -> None:
        """
        Loads configuration from a string instead of a file.

        Args:
            text (str): INI formatted text.
        """
        with self.CriticalLock:
            self.config.read_string(text)
            if self.Section is None:
                SectionList = self.GetSections()
                if len(SectionList):
                    self.Section = SectionList[0]

    def HasOption(self, Entry: str) -> bool:
        """
        Checks if an option exists in the current section.

        Args:
            Entry (str): The option name.

        Returns:
            bool: True if the option exists, False otherwise.
        """
        if self.Section is None:
            return False
        return self.config.has_option(self.Section, Entry)

    def GetSections(self) -> List[str]:
        """
        Returns a list of sections in the configuration file.

        Returns:
            List[str]: List of section names.
        """
        return self.config.sections()

    def SetSection(self, section: str) -> bool:
        """
        Sets the current working section.

        Args:
            section (str): The section name to switch to.

        Returns:
            bool: True if successful, False on error.
        """
        if not isinstance(section, str) or not len(section):
            self.LogError(
                "Error in MyConfig:SetSection: invalid section: " + str(section)
            )
            return False
        self.Section = section
        return True

    def ReadValue(
        self,
        Entry: str,
        return_type: Type = str,
        default: Any = None,
        section: Optional[str] = None,
        NoLog: bool = False
    ) -> Any:
        """
        Reads a value from the configuration.

        Args:
            Entry (str): The option name.
            return_type (Type, optional): Expected type (str, bool, float, int). Defaults to str.
            default (Any, optional): Default value if option is missing or error occurs.
            section (str, optional): Section to read from (overrides current).
            NoLog (bool, optional): If True, suppresses error logging.

        Returns:
            Any: The read value cast to the requested type, or the default value.
        """
        try:
            if section is not None:
                self.SetSection(section)

            if self.HasOption(Entry):
                if return_type == str:
                    return self.config.get(self.Section, Entry)
                elif return_type == bool:
                    return self.config.getboolean(self.Section, Entry)
                elif return_type == float:
                    return self.config.getfloat(self.Section, Entry)
                elif return_type == int:
                    # allow hex unit ids such as 0x11
                    return int(self.config.get(self.Section, Entry), 0)
                else:
                    self.LogErrorLine(
                        "Warning in MyConfig:ReadValue: invalid type or missing value, using default :"
                        + str(return_type)
                    )
                    return default
            else:
                return default
        except Exception as e1:
            if not NoLog:
                self.LogErrorLine(
                    "Error in MyConfig:ReadValue: "
                    + str(self.Section)
                    + ": "
                    + Entry
                    + ": "
                    + str(e1)
                )
            return default
