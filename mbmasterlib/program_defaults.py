#!/usr/bin/env python
# -------------------------------------------------------------------------------
#    FILE: program_defaults.py
# PURPOSE: default values
#
#  AUTHOR: Jason G Yates
#    DATE: 10-May-2019
#
# MODIFICATIONS:
# -------------------------------------------------------------------------------

"""
Module for storing default program configuration values.

This module defines the `ProgramDefaults` class which holds static constants
used throughout the library for configuration paths, logging paths, link
settings, and version information.
"""


class ProgramDefaults(object):
    """
    A container for library-wide default constants.

    Attributes:
        ConfPath (str): The default directory path for configuration files.
        ConfFile (str): The default configuration file name.
        ConfSection (str): The configuration section read by the master.
        LogPath (str): The default directory path for log files.
        LocalHost (str): The default Modbus TCP host.
        ModbusTCPPort (int): The registered Modbus TCP port.
        SerialPort (str): The default serial device.
        SerialRate (int): The default serial baud rate.
        UnitID (int): The default unit (slave) identifier.
        ResponseTimeout (float): The default response timeout in seconds.
        MBMASTER_VERSION (str): The current library version.
    """
    ConfPath: str = "/etc/mbmaster/"
    ConfFile: str = "mbmaster.conf"
    ConfSection: str = "mbmaster"
    LogPath: str = "./"
    LocalHost: str = "127.0.0.1"
    ModbusTCPPort: int = 502
    SerialPort: str = "/dev/serial0"
    SerialRate: int = 9600
    UnitID: int = 1
    ResponseTimeout: float = 1.0
    MBMASTER_VERSION: str = "V1.0.0"
