"""
Tests for modrtu.rtu.client - session handling and typed operations
"""

import unittest
from unittest.mock import MagicMock, PropertyMock, patch

import serial

from modrtu.errors import CRCMismatchError, InvalidAddressError, ModbusRTUError
from modrtu.rtu import ConnectionState, DataType, ModbusRTUClient, Result
from modrtu.rtu.codec import decode_value
from modrtu.rtu.crc import append_crc
from modrtu.rtu.protocol import CRC_MISMATCH_MESSAGE, EMPTY_RESPONSE_MESSAGE


def make_connection(response: bytes = b'') -> MagicMock:
    """Serial connection mock that answers every request with response"""
    conn = MagicMock()
    conn.is_open = True
    type(conn).in_waiting = PropertyMock(return_value=len(response))
    conn.read.return_value = response
    return conn


class ClientTestCase(unittest.TestCase):

    def setUp(self):
        self.serial_patcher = patch('serial.Serial')
        self.sleep_patcher = patch('modrtu.rtu.transport.time.sleep')
        self.mock_serial = self.serial_patcher.start()
        self.sleep_patcher.start()
        self.client = ModbusRTUClient(port='/dev/ttyTEST', baudrate=9600, timeout=1.0)

    def tearDown(self):
        self.serial_patcher.stop()
        self.sleep_patcher.stop()

    def answer(self, frame: bytes, with_crc: bool = True) -> MagicMock:
        conn = make_connection(append_crc(frame) if with_crc else frame)
        self.mock_serial.return_value = conn
        return conn


class TestSession(ClientTestCase):
    """Test cases for open/close and auto-managed connections"""

    def test_init(self):
        client = ModbusRTUClient(port='/dev/ttyUSB0', baudrate=19200, timeout=2.0)
        self.assertEqual(client.port, '/dev/ttyUSB0')
        self.assertEqual(client.baudrate, 19200)
        self.assertEqual(client.transport.timeout, 2.0)
        self.assertTrue(client.auto_open)
        self.assertIs(client.state, ConnectionState.CLOSED)

    def test_init_blocking_timeout(self):
        client = ModbusRTUClient(port='/dev/ttyUSB0', timeout=None)
        self.assertIsNone(client.transport.timeout)

    @patch.dict('os.environ', {'MODBUS_TIMEOUT': '0.25', 'MODBUS_DEBUG': '0'}, clear=False)
    def test_init_timeout_from_environment(self):
        client = ModbusRTUClient(port='/dev/ttyUSB0')
        self.assertEqual(client.transport.timeout, 0.25)

    def test_auto_open_closes_after_success(self):
        """The port is open while the request is exchanged and closed afterwards"""
        conn = self.answer(b'\x01\x03\x02\x00\x2a')
        seen = []
        conn.write.side_effect = lambda frame: seen.append(
            (self.client.is_connected(), conn.close.called))

        result = self.client.read_uint16('0')

        self.assertTrue(result.is_succeed)
        self.assertEqual(seen, [(True, False)])
        conn.close.assert_called_once()
        self.assertIs(self.client.state, ConnectionState.CLOSED)
        self.assertFalse(self.client.is_connected())

    def test_auto_open_closes_after_failure(self):
        conn = self.answer(b'\x01\x03\x02\x00\x2a\x00\x00', with_crc=False)
        seen = []
        conn.write.side_effect = lambda frame: seen.append(self.client.is_connected())

        result = self.client.read_uint16('0')

        self.assertFalse(result.is_succeed)
        self.assertEqual(seen, [True])
        conn.close.assert_called_once()
        self.assertIs(self.client.state, ConnectionState.CLOSED)

    def test_auto_open_closes_after_exception(self):
        conn = self.answer(b'\x01\x03\x02\x00\x2a')
        conn.write.side_effect = serial.SerialTimeoutException("Write timeout")

        result = self.client.read_uint16('0')

        self.assertFalse(result.is_succeed)
        self.assertEqual(result.err, "Write timeout")
        self.assertEqual(result.err_list, ["Write timeout"])
        conn.close.assert_called_once()

    def test_manual_open_keeps_port_open(self):
        conn = self.answer(b'\x01\x03\x02\x00\x2a')

        opened = self.client.open()
        first = self.client.read_uint16('0')
        second = self.client.read_int16('1')

        self.assertTrue(opened.is_succeed)
        self.assertFalse(self.client.auto_open)
        self.assertTrue(first.is_succeed and second.is_succeed)
        self.mock_serial.assert_called_once()
        conn.close.assert_not_called()
        self.assertTrue(self.client.is_connected())

        closed = self.client.close()

        self.assertTrue(closed.is_succeed)
        self.assertTrue(self.client.auto_open)
        conn.close.assert_called_once()
        self.assertIs(self.client.state, ConnectionState.CLOSED)

    def test_open_failure_returns_result(self):
        self.mock_serial.side_effect = serial.SerialException("Port not available")

        result = self.client.open()

        self.assertFalse(result.is_succeed)
        self.assertEqual(result.err, "Port not available")
        self.assertFalse(self.client.auto_open)
        self.assertIs(self.client.state, ConnectionState.CLOSED)

    def test_close_failure_returns_result(self):
        conn = self.answer(b'')
        conn.close.side_effect = serial.SerialException("Close failed")
        self.client.open()

        result = self.client.close()

        self.assertFalse(result.is_succeed)
        self.assertEqual(result.err, "Close failed")
        self.assertTrue(self.client.auto_open)
        self.assertIs(self.client.state, ConnectionState.CLOSED)

    def test_close_when_never_opened(self):
        result = self.client.close()
        self.assertTrue(result.is_succeed)

    def test_auto_open_failure(self):
        self.mock_serial.side_effect = serial.SerialException("Port not available")

        result = self.client.read_int32('0')

        self.assertFalse(result.is_succeed)
        self.assertEqual(result.err, "Port not available")
        self.assertEqual(result.err_list, ["Port not available"])
        self.assertIsNone(result.request)

    def test_context_manager(self):
        conn = self.answer(b'\x01\x03\x02\x00\x2a')

        with ModbusRTUClient(port='/dev/ttyTEST') as client:
            self.assertTrue(client.is_connected())
            self.assertFalse(client.auto_open)
            self.assertEqual(client.read_uint16('0').value, 42)

        conn.close.assert_called_once()
        self.assertTrue(client.auto_open)

    @patch('modrtu.rtu.transport.SerialTransport.list_ports')
    def test_get_port_names(self, mock_list_ports):
        mock_list_ports.return_value = ['/dev/ttyUSB0']
        self.assertEqual(ModbusRTUClient.get_port_names(), ['/dev/ttyUSB0'])


class TestRead(ClientTestCase):
    """Test cases for raw and typed reads"""

    def test_read_raw(self):
        conn = self.answer(b'\x01\x03\x04\x00\x01\x00\x02')

        result = self.client.read('100', read_length=2)

        self.assertTrue(result.is_succeed)
        self.assertEqual(result.value, b'\x02\x00\x01\x00\x04\x03\x01')
        sent = conn.write.call_args[0][0]
        self.assertEqual(sent, append_crc(b'\x01\x03\x00\x64\x00\x02'))
        self.assertEqual(result.request, '01 03 00 64 00 02 ' + sent[-2:].hex(' ').upper())
        self.assertTrue(result.response.startswith('01 03 04 00 01 00 02'))

    def test_raw_read_value_decodes(self):
        """The reversed raw value decodes to the same number as the typed read"""
        self.answer(b'\x01\x03\x04\x12\x34\x56\x78')
        raw = self.client.read('0', read_length=2)
        self.assertEqual(decode_value(raw.value, DataType.INT32), 305419896)
        self.assertEqual(self.client.read_int32('0').value, 305419896)

    def test_read_failure_keeps_value_none(self):
        self.answer(b'', with_crc=False)
        self.assertIsNone(self.client.read('0').value)

    def test_read_int16(self):
        self.answer(b'\x01\x03\x02\xff\xfe')
        result = self.client.read_int16('0')
        self.assertTrue(result.is_succeed)
        self.assertEqual(result.value, -2)

    def test_read_uint16(self):
        self.answer(b'\x01\x03\x02\xff\xfe')
        self.assertEqual(self.client.read_uint16('0').value, 65534)

    def test_read_int32_requests_two_registers(self):
        conn = self.answer(b'\x01\x03\x04\x12\x34\x56\x78')

        result = self.client.read_int32('10', station_number=1)

        self.assertEqual(result.value, 305419896)
        sent = conn.write.call_args[0][0]
        self.assertEqual(sent[:6], b'\x01\x03\x00\x0a\x00\x02')

    def test_read_uint32(self):
        self.answer(b'\x01\x03\x04\xff\xff\xff\xff')
        self.assertEqual(self.client.read_uint32('0').value, 4294967295)

    def test_read_float(self):
        self.answer(b'\x01\x03\x04\x3f\xc0\x00\x00')
        self.assertEqual(self.client.read_float('0').value, 1.5)

    def test_read_64bit_requests_four_registers(self):
        cases = (
            ('read_int64', b'\xff' * 8, -1),
            ('read_uint64', b'\x00' * 7 + b'\x07', 7),
            ('read_double', b'\x3f\xf0' + b'\x00' * 6, 1.0),
        )
        for method, data, expected in cases:
            with self.subTest(method=method):
                conn = self.answer(b'\x01\x03\x08' + data)
                result = getattr(self.client, method)('0')
                self.assertEqual(result.value, expected)
                self.assertEqual(conn.write.call_args[0][0][4:6], b'\x00\x04')

    def test_read_coil(self):
        conn = self.answer(b'\x01\x01\x01\x01')
        result = self.client.read_coil('16')
        self.assertIs(result.value, True)
        self.assertEqual(conn.write.call_args[0][0][:6], b'\x01\x01\x00\x10\x00\x01')

        self.answer(b'\x01\x01\x01\x00')
        self.assertIs(self.client.read_coil('16').value, False)

    def test_read_discrete(self):
        conn = self.answer(b'\x02\x02\x01\x01')
        result = self.client.read_discrete('3', station_number=2)
        self.assertIs(result.value, True)
        self.assertEqual(conn.write.call_args[0][0][:6], b'\x02\x02\x00\x03\x00\x01')

    def test_read_value_function_code_override(self):
        conn = self.answer(b'\x01\x04\x02\x00\x05')
        result = self.client.read_value('0', DataType.UINT16, function_code=4)
        self.assertEqual(result.value, 5)
        self.assertEqual(conn.write.call_args[0][0][1], 4)

    def test_empty_response(self):
        self.answer(b'', with_crc=False)

        result = self.client.read_int16('0')

        self.assertFalse(result.is_succeed)
        self.assertEqual(result.err, EMPTY_RESPONSE_MESSAGE)
        self.assertEqual(result.err_list, [EMPTY_RESPONSE_MESSAGE])
        self.assertIsNone(result.value)
        self.assertIsNotNone(result.request)
        self.assertIsNone(result.response)

    def test_crc_mismatch(self):
        self.answer(b'\x01\x03\x02\x12\x34\x00\x00', with_crc=False)

        result = self.client.read_int16('0')

        self.assertFalse(result.is_succeed)
        self.assertEqual(result.err, CRC_MISMATCH_MESSAGE)
        self.assertEqual(result.err_list, [CRC_MISMATCH_MESSAGE])
        self.assertEqual(result.response, '01 03 02 12 34 00 00')
        with self.assertRaises(CRCMismatchError):
            result.unwrap()

    def test_invalid_address(self):
        conn = self.answer(b'\x01\x03\x02\x00\x01')

        result = self.client.read_int16('not-a-number')

        self.assertFalse(result.is_succeed)
        self.assertIsInstance(result.exception, InvalidAddressError)
        self.assertEqual(len(result.err_list), 1)
        conn.write.assert_not_called()
        conn.close.assert_called_once()

    def test_insufficient_bytes(self):
        """A reply too short for the type fails instead of raising"""
        self.answer(b'\x01\x03\x02\x00\x01')

        result = self.client.read_double('0')

        self.assertFalse(result.is_succeed)
        self.assertIsNone(result.value)
        self.assertEqual(len(result.err_list), 1)
        self.assertIsNotNone(result.response)


class TestWrite(ClientTestCase):
    """Test cases for writes"""

    def test_write_coil_true(self):
        conn = self.answer(b'\x01\x05\x00\x10\xff\x00')

        result = self.client.write_coil('16', True, station_number=1)

        self.assertTrue(result.is_succeed)
        self.assertIsNone(result.value)
        self.assertTrue(result.request.startswith('01 05 00 10 FF 00'))
        self.assertEqual(conn.write.call_args[0][0], append_crc(b'\x01\x05\x00\x10\xff\x00'))

    def test_write_coil_false(self):
        conn = self.answer(b'\x01\x05\x00\x10\x00\x00')
        result = self.client.write_coil('16', False)
        self.assertTrue(result.is_succeed)
        self.assertEqual(conn.write.call_args[0][0][:6], b'\x01\x05\x00\x10\x00\x00')

    def test_write_raw(self):
        conn = self.answer(b'\x01\x10\x00\x00\x00\x02')

        result = self.client.write('0', b'\x00\x01\x00\x02')

        self.assertTrue(result.is_succeed)
        self.assertEqual(conn.write.call_args[0][0],
                         append_crc(b'\x01\x10\x00\x00\x00\x02\x04\x00\x01\x00\x02'))

    def test_write_int32(self):
        conn = self.answer(b'\x01\x10\x00\x64\x00\x02')

        result = self.client.write_int32('100', 305419896)

        self.assertTrue(result.is_succeed)
        self.assertEqual(conn.write.call_args[0][0][:11],
                         b'\x01\x10\x00\x64\x00\x02\x04\x12\x34\x56\x78')

    def test_typed_writes_payload(self):
        cases = (
            ('write_int16', -2, b'\xff\xfe'),
            ('write_uint16', 0x1234, b'\x12\x34'),
            ('write_uint32', 1, b'\x00\x00\x00\x01'),
            ('write_int64', -1, b'\xff' * 8),
            ('write_uint64', 2, b'\x00' * 7 + b'\x02'),
            ('write_float', 1.5, b'\x3f\xc0\x00\x00'),
            ('write_double', 1.0, b'\x3f\xf0' + b'\x00' * 6),
        )
        for method, value, payload in cases:
            with self.subTest(method=method):
                conn = self.answer(b'\x01\x10\x00\x00\x00\x01')
                result = getattr(self.client, method)('0', value)
                self.assertTrue(result.is_succeed)
                sent = conn.write.call_args[0][0]
                self.assertEqual(sent[6], len(payload))
                self.assertEqual(sent[7:-2], payload)

    def test_write_then_read_round_trip(self):
        """Wire bytes of a write decode back to the written value"""
        conn = self.answer(b'\x01\x10\x00\x00\x00\x02')
        self.client.write_int32('0', 305419896)
        payload = conn.write.call_args[0][0][7:-2]

        self.answer(b'\x01\x03\x04' + payload)
        self.assertEqual(self.client.read_int32('0').value, 305419896)

    def test_write_out_of_range(self):
        result = self.client.write_uint16('0', 70000)

        self.assertFalse(result.is_succeed)
        self.assertEqual(len(result.err_list), 1)
        self.mock_serial.assert_not_called()

    def test_write_value_bool_writes_coil(self):
        conn = self.answer(b'\x01\x05\x00\x10\xff\x00')
        result = self.client.write_value('16', True, DataType.BOOL)
        self.assertTrue(result.is_succeed)
        self.assertEqual(conn.write.call_args[0][0][:6], b'\x01\x05\x00\x10\xff\x00')

    def test_write_crc_mismatch(self):
        self.answer(b'\x01\x10\x00\x00\x00\x01\x00\x00', with_crc=False)
        result = self.client.write_uint16('0', 1)
        self.assertFalse(result.is_succeed)
        self.assertEqual(result.err, CRC_MISMATCH_MESSAGE)
        self.assertEqual(result.err_list, [CRC_MISMATCH_MESSAGE])


class TestResult(unittest.TestCase):
    """Test cases for the Result container"""

    def test_derive_copies_diagnostics(self):
        raw = Result(value=b'\x01', request='01', response='02', err_list=['x'])
        typed = raw.derive(5)
        self.assertEqual(typed.value, 5)
        self.assertEqual(typed.request, '01')
        self.assertEqual(typed.response, '02')
        typed.err_list.append('y')
        self.assertEqual(raw.err_list, ['x'])

    def test_fail(self):
        result = Result(value=1).fail("boom", record=True)
        self.assertFalse(result)
        self.assertIsNone(result.value)
        self.assertEqual(result.err_list, ["boom"])

    def test_unwrap(self):
        self.assertEqual(Result(value=3).unwrap(), 3)
        with self.assertRaises(ModbusRTUError):
            Result().fail("No response").unwrap()

    def test_to_dict_renders_bytes(self):
        data = Result(value=b'\x01\xab').to_dict()
        self.assertEqual(data['value'], '01 AB')
        self.assertNotIn('exception', data)


if __name__ == '__main__':
    unittest.main()
