"""
modrtu - Main entry point for running as a module
"""

import argparse
import json
import logging
import sys

from . import load_env_files
from .api import create_rest_app
from .config import DEFAULT_API_PORT, DEFAULT_STATION
from .rtu import DataType, ModbusRTUClient
from .rtu.codec import Number

# Configure logging
logger = logging.getLogger(__name__)


def parse_cli_value(text: str, data_type: DataType) -> Number:
    """Convert a command line value to the type written for data_type."""
    if data_type is DataType.BOOL:
        return text.strip().lower() in ('1', 'true', 'on')
    if data_type in (DataType.FLOAT, DataType.DOUBLE):
        return float(text)
    return int(text, 0)


def build_client(args) -> ModbusRTUClient:
    kwargs = {'port': args.port, 'baudrate': args.baudrate}
    if args.timeout is not None:
        kwargs['timeout'] = args.timeout
    return ModbusRTUClient(**kwargs)


def add_serial_arguments(parser: argparse.ArgumentParser):
    parser.add_argument('--port', help='Modbus serial port')
    parser.add_argument('--baudrate', type=int, help='Baud rate')
    parser.add_argument('--timeout', type=float, help='Timeout in seconds')
    parser.add_argument('--station', type=int, default=DEFAULT_STATION,
                        help='Station number of the device')


def create_parser() -> argparse.ArgumentParser:
    type_names = [t.value for t in DataType]
    parser = argparse.ArgumentParser(description='modrtu - Modbus RTU master client')
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    subparsers.add_parser('ports', help='List serial ports')

    read_parser = subparsers.add_parser('read', help='Read a typed value')
    add_serial_arguments(read_parser)
    read_parser.add_argument('type', choices=type_names, help='Value type')
    read_parser.add_argument('address', help='Register address (zero-based)')
    read_parser.add_argument('--function-code', type=int, help='Override the function code')

    raw_parser = subparsers.add_parser('raw-read', help='Read raw response bytes, last byte first')
    add_serial_arguments(raw_parser)
    raw_parser.add_argument('address', help='Register address (zero-based)')
    raw_parser.add_argument('--length', type=int, default=1, help='Registers or bits to read')
    raw_parser.add_argument('--function-code', type=int, default=3, help='Function code')

    write_parser = subparsers.add_parser('write', help='Write a typed value')
    add_serial_arguments(write_parser)
    write_parser.add_argument('type', choices=type_names, help='Value type')
    write_parser.add_argument('address', help='Register address (zero-based)')
    write_parser.add_argument('value', help='Value to write')

    rest_parser = subparsers.add_parser('rest', help='Run REST API server')
    add_serial_arguments(rest_parser)
    rest_parser.add_argument('--host', default='0.0.0.0', help='Host to bind the server')
    rest_parser.add_argument('--api-port', type=int, default=DEFAULT_API_PORT,
                             help='Port to bind the server')
    rest_parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    return parser


def main(argv=None) -> int:
    """Main entry point for the modrtu module"""
    # Load environment variables
    load_env_files()

    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command == 'ports':
        print(json.dumps(ModbusRTUClient.get_port_names(), indent=2))
        return 0

    if args.command == 'rest':
        app = create_rest_app(port=args.port, baudrate=args.baudrate,
                              timeout=args.timeout, debug=args.debug)
        # one request at a time on the serial line
        app.run(host=args.host, port=args.api_port, debug=args.debug, threaded=False)
        return 0

    if args.command not in ('read', 'raw-read', 'write'):
        parser.print_help()
        return 1

    client = build_client(args)
    if args.command == 'read':
        data_type = DataType(args.type)
        result = client.read_value(args.address, data_type, args.station, args.function_code)
    elif args.command == 'raw-read':
        result = client.read(args.address, args.station, args.function_code, args.length)
    else:
        data_type = DataType(args.type)
        try:
            value = parse_cli_value(args.value, data_type)
        except ValueError as e:
            print(f"Error: invalid {data_type.value} value {args.value!r}: {e}", file=sys.stderr)
            return 1
        result = client.write_value(args.address, value, data_type, station_number=args.station)

    # Output response as JSON
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.is_succeed else 1


if __name__ == '__main__':
    sys.exit(main())
