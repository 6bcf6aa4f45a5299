"""
Shared fixtures for the mbmaster tests.

`FakeTransport` implements the link interface the master uses (`Open`,
`Close`, `Send`, `Receive`, `Flush`, `PendingBytes`) and plays back scripted
replies, one per frame sent.
"""

import logging
from typing import Callable, List, Optional, Union

import pytest

from mbmasterlib.modbuserrors import ModbusTimeout, RequestCancelled
from mbmasterlib.modbusframe import BuildRTUFrame, BuildTCPFrame
from mbmasterlib.mymodbus import ModbusMaster

Reply = Union[bytes, Callable[[bytes], bytes], None]


class FakeTransport:
    """
    In-memory link.

    Each `Send` pops the next scripted reply and makes its bytes available
    to `Receive`. A reply may be bytes, a callable taking the sent frame and
    returning bytes, or None for no answer.

    Example:
        >>> transport = FakeTransport()
        >>> transport.QueueReply(bytes.fromhex("1101050dcd"))
        >>> transport.Send(request_frame)
        >>> transport.Receive(3, 1.0)
        b'\\x11\\x01\\x05'
    """

    def __init__(self):
        self.Replies: List[Reply] = []
        self.Sent: List[bytes] = []
        self.Buffer = bytearray()
        self.IsOpen = False
        self.FlushCount = 0

    def QueueReply(self, reply: Reply) -> None:
        self.Replies.append(reply)

    def Inject(self, data: bytes) -> None:
        """Adds bytes to the receive buffer without a request."""
        self.Buffer.extend(data)

    def Open(self) -> None:
        self.IsOpen = True

    def Close(self) -> None:
        self.IsOpen = False

    def Send(self, data: bytes) -> None:
        self.Sent.append(bytes(data))
        if not self.Replies:
            return
        reply = self.Replies.pop(0)
        if callable(reply):
            reply = reply(bytes(data))
        if reply:
            self.Buffer.extend(reply)

    def Receive(self, count: int, timeout: float, cancel=None) -> bytes:
        if len(self.Buffer) >= count:
            data = bytes(self.Buffer[:count])
            del self.Buffer[:count]
            return data
        if cancel is not None and cancel.wait(timeout):
            self.Flush()
            raise RequestCancelled("fake receive cancelled")
        self.Flush()
        raise ModbusTimeout("fake timeout waiting for %d bytes" % count)

    def Flush(self) -> None:
        self.FlushCount += 1
        del self.Buffer[:]

    def PendingBytes(self) -> int:
        return len(self.Buffer)


def rtu_reply(unit_id: int, pdu: bytes) -> bytes:
    return BuildRTUFrame(pdu, unit_id)


def tcp_reply(pdu: bytes, unit_id: Optional[int] = None, transaction_id: Optional[int] = None):
    """
    Returns a reply callable echoing the request's transaction and unit id.
    """

    def reply(sent: bytes) -> bytes:
        tid = transaction_id if transaction_id is not None else int.from_bytes(sent[0:2], "big")
        uid = unit_id if unit_id is not None else sent[6]
        return BuildTCPFrame(pdu, uid, tid)

    return reply


@pytest.fixture
def test_log():
    log = logging.getLogger("mbmaster_test")
    log.addHandler(logging.NullHandler())
    return log


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def rtu_master(fake_transport, tmp_path):
    master = ModbusMaster(
        mode="rtu",
        unit_id=0x11,
        timeout=0.05,
        loglocation=str(tmp_path),
        transport=fake_transport,
    )
    master.Open()
    yield master
    master.Close()


@pytest.fixture
def tcp_master(fake_transport, tmp_path):
    master = ModbusMaster(
        mode="tcp",
        unit_id=0x11,
        timeout=0.05,
        loglocation=str(tmp_path),
        transport=fake_transport,
    )
    master.Open()
    yield master
    master.Close()
