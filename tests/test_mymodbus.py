"""Tests for the ModbusMaster session."""

import threading
import time

import pytest

from mbmasterlib.modbusdecode import ExceptionResponse, ReadResult
from mbmasterlib.modbuserrors import (
    FrameCorruption,
    InvalidArgument,
    MalformedResponse,
    ModbusTimeout,
    ProtocolMismatch,
    RequestCancelled,
    SessionBusy,
    SlaveException,
    TransportError,
    UnmatchedResponse,
)
from mbmasterlib.modbusframe import BuildTCPFrame
from mbmasterlib.modbusmsg import BuildRequest
from mbmasterlib.mymodbus import ModbusMaster

from conftest import rtu_reply, tcp_reply


def stat(master, name):
    for entry in master.GetCommStats():
        if name in entry:
            return entry[name]
    raise KeyError(name)


class TestRTUReads:
    def test_read_holding_registers(self, rtu_master, fake_transport):
        fake_transport.QueueReply(rtu_reply(0x11, bytes.fromhex("0306022b00000064")))
        assert rtu_master.ReadHoldingRegisters(0x006B, 3) == [0x022B, 0, 0x64]
        assert fake_transport.Sent == [bytes.fromhex("1103006b00037687")]

    def test_read_coils(self, rtu_master, fake_transport):
        fake_transport.QueueReply(rtu_reply(0x11, bytes([0x01, 0x01, 0b00000101])))
        assert rtu_master.ReadCoils(0, 3) == [True, False, True]

    def test_read_discrete_inputs(self, rtu_master, fake_transport):
        fake_transport.QueueReply(rtu_reply(0x11, bytes([0x02, 0x01, 0x02])))
        assert rtu_master.ReadDiscreteInputs(0, 2) == [False, True]
        assert fake_transport.Sent[0][1] == 0x02

    def test_read_input_registers(self, rtu_master, fake_transport):
        fake_transport.QueueReply(rtu_reply(0x11, bytes.fromhex("0402ffff")))
        assert rtu_master.ReadInputRegisters(8, 1) == [0xFFFF]
        assert fake_transport.Sent[0][1] == 0x04

    def test_unit_id_override(self, rtu_master, fake_transport):
        fake_transport.QueueReply(rtu_reply(0x05, bytes.fromhex("03020007")))
        assert rtu_master.ReadHoldingRegisters(0, 1, unit_id=5) == [7]
        assert fake_transport.Sent[0][0] == 0x05

    def test_slave_exception(self, rtu_master, fake_transport):
        fake_transport.QueueReply(rtu_reply(0x11, b"\x81\x02"))
        with pytest.raises(SlaveException) as excinfo:
            rtu_master.ReadCoils(0x1000, 8)
        assert excinfo.value.function == 0x01
        assert excinfo.value.code == 0x02
        assert excinfo.value.text == "Illegal Data Address"
        assert stat(rtu_master, "Modbus Exceptions") == 1
        assert stat(rtu_master, "Illegal Data Address") == 1

    def test_process_transaction_returns_exception_response(self, rtu_master, fake_transport):
        fake_transport.QueueReply(rtu_reply(0x11, b"\x83\x06"))
        result = rtu_master.ProcessTransaction(0x03, 0, 1)
        assert isinstance(result, ExceptionResponse)
        assert result.text == "Slave Device Busy"

    def test_process_transaction_returns_read_result(self, rtu_master, fake_transport):
        fake_transport.QueueReply(rtu_reply(0x11, bytes.fromhex("03020001")))
        result = rtu_master.ProcessTransaction(0x03, 4, 1)
        assert isinstance(result, ReadResult)
        assert result.request == BuildRequest(0x03, 4, 1, unit_id=0x11)

    def test_link_free_after_each_request(self, rtu_master, fake_transport):
        for value in range(3):
            fake_transport.QueueReply(rtu_reply(0x11, bytes([0x03, 0x02, 0x00, value])))
            assert rtu_master.ReadHoldingRegisters(0, 1) == [value]
        assert not rtu_master.Tracker.IsBusy()
        assert stat(rtu_master, "Packet Count") == "M: 3, S: 3"


class TestRTUErrors:
    def test_invalid_argument_before_io(self, rtu_master, fake_transport):
        with pytest.raises(InvalidArgument):
            rtu_master.ReadHoldingRegisters(0, 126)
        with pytest.raises(InvalidArgument):
            rtu_master.ReadCoils(0, 2001)
        with pytest.raises(InvalidArgument):
            rtu_master.ReadCoils(0, 1, unit_id=256)
        assert fake_transport.Sent == []

    def test_timeout(self, rtu_master, fake_transport):
        with pytest.raises(ModbusTimeout):
            rtu_master.ReadHoldingRegisters(0, 1)
        assert stat(rtu_master, "Timeout Errors") == "1"
        assert fake_transport.PendingBytes() == 0
        assert not rtu_master.Tracker.IsBusy()

    def test_partial_reply_is_discarded(self, rtu_master, fake_transport):
        fake_transport.QueueReply(rtu_reply(0x11, bytes.fromhex("0304000100"))[:5])
        with pytest.raises(ModbusTimeout):
            rtu_master.ReadHoldingRegisters(0, 2)
        assert fake_transport.PendingBytes() == 0

        fake_transport.QueueReply(rtu_reply(0x11, bytes.fromhex("030400010002")))
        assert rtu_master.ReadHoldingRegisters(0, 2) == [1, 2]

    def test_crc_error(self, rtu_master, fake_transport):
        frame = bytearray(rtu_reply(0x11, bytes.fromhex("03020001")))
        frame[-1] ^= 0xFF
        fake_transport.QueueReply(bytes(frame))
        with pytest.raises(FrameCorruption):
            rtu_master.ReadHoldingRegisters(0, 1)
        assert stat(rtu_master, "CRC Errors") == "1 "

    def test_wrong_unit(self, rtu_master, fake_transport):
        fake_transport.QueueReply(rtu_reply(0x12, bytes.fromhex("03020001")))
        with pytest.raises(ProtocolMismatch):
            rtu_master.ReadHoldingRegisters(0, 1)
        assert stat(rtu_master, "Validation Errors") == 1

    def test_wrong_byte_count(self, rtu_master, fake_transport):
        fake_transport.QueueReply(rtu_reply(0x11, bytes.fromhex("030400010002")))
        with pytest.raises(MalformedResponse):
            rtu_master.ReadHoldingRegisters(0, 1)

    @pytest.mark.parametrize("bit", range(8))
    def test_corrupt_byte_count_is_crc_error(self, rtu_master, fake_transport, bit):
        frame = bytearray(rtu_reply(0x11, bytes.fromhex("030400010002")))
        frame[2] ^= 1 << bit
        fake_transport.QueueReply(bytes(frame))
        with pytest.raises(FrameCorruption):
            rtu_master.ReadHoldingRegisters(0, 2)
        assert stat(rtu_master, "Timeout Errors") == "0"
        assert fake_transport.PendingBytes() == 0

    def test_session_busy(self, rtu_master, fake_transport):
        rtu_master.Tracker.BeginRequest(BuildRequest(0x03, 0, 1, unit_id=0x11))
        with pytest.raises(SessionBusy):
            rtu_master.ReadHoldingRegisters(0, 1)
        assert fake_transport.Sent == []

    def test_stale_data_flushed_before_send(self, rtu_master, fake_transport):
        fake_transport.Inject(b"\x00\x00\x00")
        fake_transport.QueueReply(rtu_reply(0x11, bytes.fromhex("03020009")))
        assert rtu_master.ReadHoldingRegisters(0, 1) == [9]

    def test_errors_are_not_retried(self, rtu_master, fake_transport):
        with pytest.raises(ModbusTimeout):
            rtu_master.ReadCoils(0, 1)
        assert len(fake_transport.Sent) == 1


class TestTCPReads:
    def test_read_holding_registers(self, tcp_master, fake_transport):
        fake_transport.QueueReply(tcp_reply(bytes.fromhex("0306022b00000064")))
        assert tcp_master.ReadHoldingRegisters(0x006B, 3) == [0x022B, 0, 0x64]
        assert fake_transport.Sent == [bytes.fromhex("00000000000611" "03006b0003")]

    def test_transaction_ids_increment(self, tcp_master, fake_transport):
        for _ in range(3):
            fake_transport.QueueReply(tcp_reply(bytes.fromhex("03020001")))
            tcp_master.ReadHoldingRegisters(0, 1)
        assert [frame[0:2] for frame in fake_transport.Sent] == [
            b"\x00\x00",
            b"\x00\x01",
            b"\x00\x02",
        ]

    def test_exception_response(self, tcp_master, fake_transport):
        fake_transport.QueueReply(tcp_reply(b"\x84\x0a"))
        with pytest.raises(SlaveException) as excinfo:
            tcp_master.ReadInputRegisters(0, 1)
        assert excinfo.value.code == 0x0A
        assert excinfo.value.text == "Gateway Path Unavailable"

    def test_stale_transaction_is_unmatched(self, tcp_master, fake_transport):
        fake_transport.QueueReply(tcp_reply(bytes.fromhex("03020001"), transaction_id=0x0040))
        with pytest.raises(UnmatchedResponse):
            tcp_master.ReadHoldingRegisters(0, 1)
        assert stat(tcp_master, "Unmatched Responses") == 1
        assert fake_transport.PendingBytes() == 0

    def test_wrong_unit(self, tcp_master, fake_transport):
        fake_transport.QueueReply(tcp_reply(bytes.fromhex("03020001"), unit_id=0x01))
        with pytest.raises(ProtocolMismatch):
            tcp_master.ReadHoldingRegisters(0, 1)

    def test_nonzero_protocol_id(self, tcp_master, fake_transport):
        def reply(sent):
            frame = bytearray(BuildTCPFrame(bytes.fromhex("03020001"), 0x11, 0))
            frame[2] = 0x01
            return bytes(frame)

        fake_transport.QueueReply(reply)
        with pytest.raises(ProtocolMismatch):
            tcp_master.ReadHoldingRegisters(0, 1)

    def test_length_out_of_range(self, tcp_master, fake_transport):
        fake_transport.QueueReply(lambda sent: sent[0:4] + b"\x01\x00\x11")
        with pytest.raises(MalformedResponse):
            tcp_master.ReadHoldingRegisters(0, 1)


class TestCancel:
    def test_cancel_waiting_request(self, tmp_path, fake_transport):
        master = ModbusMaster(
            mode="rtu", timeout=5.0, loglocation=str(tmp_path), transport=fake_transport
        )
        master.Open()
        errors = []

        def reader():
            try:
                master.ReadHoldingRegisters(0, 1)
            except RequestCancelled as e1:
                errors.append(e1)

        thread = threading.Thread(target=reader)
        start = time.monotonic()
        thread.start()
        deadline = time.monotonic() + 2.0
        while not fake_transport.Sent and time.monotonic() < deadline:
            time.sleep(0.01)
        master.Cancel()
        thread.join(2.0)

        assert not thread.is_alive()
        assert len(errors) == 1
        assert time.monotonic() - start < 5.0
        assert stat(master, "Cancelled Requests") == 1
        assert not master.Tracker.IsBusy()

        fake_transport.QueueReply(rtu_reply(0x01, bytes.fromhex("03020003")))
        assert master.ReadHoldingRegisters(0, 1) == [3]
        master.Close()


    def test_close_before_request_starts(self, tmp_path, fake_transport):
        master = ModbusMaster(
            mode="rtu", timeout=5.0, loglocation=str(tmp_path), transport=fake_transport
        )
        master.Open()

        class CloseOnClear(threading.Event):
            closed = False

            def clear(self):
                # Close from another caller arrives just ahead of the clear
                if not self.closed:
                    self.closed = True
                    master.Close()
                super().clear()

        master.CancelEvent = CloseOnClear()
        start = time.monotonic()
        with pytest.raises(TransportError):
            master.ReadHoldingRegisters(0, 1)
        assert time.monotonic() - start < 1.0
        assert fake_transport.Sent == []


class TestObservers:
    def test_request_and_response_events(self, rtu_master, fake_transport):
        events = []
        rtu_master.AddObserver(lambda event, fields: events.append((event, fields)))
        fake_transport.QueueReply(rtu_reply(0x11, bytes.fromhex("03020001")))
        rtu_master.ReadHoldingRegisters(0x006B, 1)

        assert [event for event, _ in events] == ["request", "response"]
        request_fields = events[0][1]
        assert request_fields["function"] == 0x03
        assert request_fields["name"] == "ReadHoldingRegisters"
        assert request_fields["address"] == 0x006B
        assert request_fields["frame"].startswith("11 03 00 6b 00 01")
        assert events[1][1]["values"] == [1]

    def test_error_event(self, rtu_master, fake_transport):
        events = []
        rtu_master.AddObserver(lambda event, fields: events.append((event, fields)))
        with pytest.raises(ModbusTimeout):
            rtu_master.ReadCoils(0, 1)
        assert events[-1][0] == "error"
        assert events[-1][1]["error"] == "ModbusTimeout"

    def test_exception_event(self, rtu_master, fake_transport):
        events = []
        rtu_master.AddObserver(lambda event, fields: events.append((event, fields)))
        fake_transport.QueueReply(rtu_reply(0x11, b"\x82\x01"))
        with pytest.raises(SlaveException):
            rtu_master.ReadDiscreteInputs(0, 1)
        assert events[-1][1]["exception_code"] == 0x01

    def test_observer_errors_are_not_propagated(self, rtu_master, fake_transport):
        def broken(event, fields):
            raise RuntimeError("observer failed")

        rtu_master.AddObserver(broken)
        fake_transport.QueueReply(rtu_reply(0x11, bytes.fromhex("03020001")))
        assert rtu_master.ReadHoldingRegisters(0, 1) == [1]

    def test_remove_observer(self, rtu_master, fake_transport):
        events = []

        def observer(event, fields):
            events.append(event)

        rtu_master.AddObserver(observer)
        rtu_master.AddObserver(observer)
        rtu_master.RemoveObserver(observer)
        fake_transport.QueueReply(rtu_reply(0x11, bytes.fromhex("03020001")))
        rtu_master.ReadHoldingRegisters(0, 1)
        assert events == []


class TestSessionLifecycle:
    def test_context_manager(self, tmp_path, fake_transport):
        with ModbusMaster(transport=fake_transport, loglocation=str(tmp_path)) as master:
            assert fake_transport.IsOpen
            assert master.Mode == "rtu"
        assert not fake_transport.IsOpen

    def test_closed_master_refuses_requests(self, tmp_path, fake_transport):
        master = ModbusMaster(transport=fake_transport, loglocation=str(tmp_path))
        master.Open()
        master.Close()
        with pytest.raises(TransportError):
            master.ReadCoils(0, 1)

    def test_log_file_created(self, tmp_path, fake_transport):
        with pytest.raises(InvalidArgument):
            ModbusMaster(unit_id=300, transport=fake_transport, loglocation=str(tmp_path))
        assert (tmp_path / "mbmaster.log").exists()

    def test_comm_stats_reset(self, rtu_master, fake_transport):
        with pytest.raises(ModbusTimeout):
            rtu_master.ReadCoils(0, 1)
        rtu_master.ResetCommStats()
        assert stat(rtu_master, "Timeout Errors") == "0"
        assert stat(rtu_master, "Modbus Transport") == "Serial"


class TestSettings:
    def test_defaults(self, tmp_path, fake_transport):
        master = ModbusMaster(transport=fake_transport, loglocation=str(tmp_path))
        assert master.Mode == "rtu"
        assert master.UnitID == 1
        assert master.Timeout == 1.0
        assert master.TCPPort == 502
        assert master.Rate == 9600

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"mode": "ascii"},
            {"parity": "mark"},
            {"databits": 6},
            {"stopbits": 3},
            {"unit_id": -1},
            {"timeout": 0},
            {"timeout": "soon"},
            {"tcp_port": 70000},
            {"rate": 0},
        ],
    )
    def test_invalid_settings(self, tmp_path, fake_transport, kwargs):
        with pytest.raises(InvalidArgument):
            ModbusMaster(transport=fake_transport, loglocation=str(tmp_path), **kwargs)

    def test_mode_is_case_insensitive(self, tmp_path, fake_transport):
        master = ModbusMaster(mode="TCP", transport=fake_transport, loglocation=str(tmp_path))
        assert master.Mode == "tcp"

    def test_config_file(self, tmp_path, fake_transport):
        conf = tmp_path / "mbmaster.conf"
        conf.write_text(
            "[mbmaster]\n"
            "mode = tcp\n"
            "host = 10.0.0.5\n"
            "tcp_port = 1502\n"
            "unit_id = 0x11\n"
            "timeout = 0.25\n"
            "debug = True\n"
            "loglocation = %s\n" % tmp_path
        )
        master = ModbusMaster(config=str(conf), transport=fake_transport)
        assert master.Mode == "tcp"
        assert master.Host == "10.0.0.5"
        assert master.TCPPort == 1502
        assert master.UnitID == 0x11
        assert master.Timeout == 0.25
        assert master.debug is True

    def test_keywords_override_config(self, tmp_path, fake_transport):
        conf = tmp_path / "mbmaster.conf"
        conf.write_text("[mbmaster]\nmode = tcp\nunit_id = 9\n")
        master = ModbusMaster(
            config=str(conf), unit_id=3, transport=fake_transport, loglocation=str(tmp_path)
        )
        assert master.Mode == "tcp"
        assert master.UnitID == 3

    def test_config_invalid_mode(self, tmp_path, fake_transport):
        conf = tmp_path / "mbmaster.conf"
        conf.write_text("[mbmaster]\nmode = ascii\n")
        with pytest.raises(InvalidArgument):
            ModbusMaster(config=str(conf), transport=fake_transport, loglocation=str(tmp_path))

    @pytest.mark.parametrize(
        "line",
        [
            "timeout = soon",
            "serial_rate = fast",
            "unit_id = abc",
            "tcp_port = x",
            "debug = maybe",
        ],
    )
    def test_config_unparseable_value(self, tmp_path, fake_transport, line):
        conf = tmp_path / "mbmaster.conf"
        conf.write_text("[mbmaster]\n" + line + "\n")
        with pytest.raises(InvalidArgument) as excinfo:
            ModbusMaster(config=str(conf), transport=fake_transport, loglocation=str(tmp_path))
        assert line.split(" = ")[0] in str(excinfo.value)
