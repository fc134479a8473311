"""
modrtu.api.rest - REST API over a Modbus RTU client
"""

import logging
from threading import Lock
from typing import Optional

from flask import Flask, jsonify, request

from ..config import DEFAULT_STATION
from ..errors import EmptyResponseError, InvalidAddressError, ResponseError
from ..rtu import DataType, ModbusRTUClient, Result

# Configure logging
logger = logging.getLogger(__name__)


def parse_value(raw, data_type: DataType):
    """
    Convert a JSON value to the Python type written for data_type

    Raises:
        ValueError: If the value cannot be converted
    """
    if data_type is DataType.BOOL:
        if isinstance(raw, str):
            return raw.strip().lower() in ('1', 'true', 'on')
        return bool(raw)
    if data_type in (DataType.FLOAT, DataType.DOUBLE):
        return float(raw)
    if isinstance(raw, float) and not raw.is_integer():
        raise ValueError(f"{data_type.value} needs an integer, got {raw!r}")
    return int(raw)


def create_rest_app(port: Optional[str] = None,
                    baudrate: Optional[int] = None,
                    timeout: Optional[float] = None,
                    client: Optional[ModbusRTUClient] = None,
                    debug: bool = False) -> Flask:
    """
    Create Flask application for REST API

    Args:
        port: Modbus serial port (default: MODBUS_PORT)
        baudrate: Baud rate (default: MODBUS_BAUDRATE)
        timeout: Timeout in seconds (default: MODBUS_TIMEOUT)
        client: Prebuilt client, overrides the serial settings
        debug: Enable debug mode (default: False)

    Returns:
        Flask application
    """
    app = Flask(__name__)

    # Configure logging
    if not debug:
        log = logging.getLogger('werkzeug')
        log.setLevel(logging.ERROR)

    if client is None:
        kwargs = {'port': port, 'baudrate': baudrate}
        if timeout is not None:
            kwargs['timeout'] = timeout
        client = ModbusRTUClient(**kwargs)
    # the client has no locking of its own
    client_lock = Lock()
    app.config['MODBUS_CLIENT'] = client

    def respond(result: Result, **extra):
        body = result.to_dict()
        body.update(extra)
        if result.is_succeed:
            return jsonify(body)
        if isinstance(result.exception, InvalidAddressError):
            return jsonify(body), 400
        if isinstance(result.exception, EmptyResponseError):
            return jsonify(body), 504
        if isinstance(result.exception, ResponseError):
            return jsonify(body), 502
        return jsonify(body), 503

    def station_from(data: dict = None) -> int:
        if data and 'station' in data:
            return int(data['station'])
        return request.args.get('station', default=DEFAULT_STATION, type=int)

    def data_type_from(name: str) -> DataType:
        try:
            return DataType(name.lower())
        except ValueError:
            return None

    @app.after_request
    def add_cors_headers(response):
        """Add CORS headers to allow cross-origin requests"""
        response.headers['Access-Control-Allow-Origin'] = '*'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
        return response

    @app.route('/api/status', methods=['GET'])
    def get_status():
        """Get serial connection status"""
        return jsonify({
            'status': 'connected' if client.is_connected() else 'disconnected',
            'auto_open': client.auto_open,
            'port': str(client.port),
            'baudrate': int(client.baudrate) if client.baudrate else 0
        })

    @app.route('/api/read/<name>/<address>', methods=['GET'])
    def read_value(name, address):
        """Read a typed value"""
        data_type = data_type_from(name)
        if data_type is None:
            return jsonify({'error': f'Unknown data type: {name}'}), 400
        station = station_from()
        with client_lock:
            result = client.read_value(address, data_type, station_number=station)
        return respond(result, address=address, type=data_type.value, station=station)

    @app.route('/api/write/<name>/<address>', methods=['POST'])
    def write_value(name, address):
        """Write a typed value"""
        data_type = data_type_from(name)
        if data_type is None:
            return jsonify({'error': f'Unknown data type: {name}'}), 400

        data = request.get_json(silent=True)
        if data is None:
            return jsonify({'error': 'Invalid JSON data'}), 400
        if 'value' not in data:
            return jsonify({'error': 'Missing value parameter'}), 400
        try:
            value = parse_value(data['value'], data_type)
            station = station_from(data)
        except (TypeError, ValueError) as e:
            return jsonify({'error': str(e)}), 400

        with client_lock:
            result = client.write_value(address, value, data_type, station_number=station)
        return respond(result, address=address, type=data_type.value, station=station, written=value)

    @app.route('/api/coils/<address>', methods=['GET'])
    def read_coil(address):
        """Read single coil"""
        station = station_from()
        with client_lock:
            result = client.read_coil(address, station_number=station)
        return respond(result, address=address, station=station)

    @app.route('/api/coils/<address>', methods=['POST'])
    def write_coil(address):
        """Write single coil"""
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({'error': 'Invalid JSON data'}), 400
        if 'value' not in data:
            return jsonify({'error': 'Missing value parameter'}), 400
        try:
            value = parse_value(data['value'], DataType.BOOL)
            station = station_from(data)
        except (TypeError, ValueError) as e:
            return jsonify({'error': str(e)}), 400

        with client_lock:
            result = client.write_coil(address, value, station_number=station)
        return respond(result, address=address, station=station, written=value,
                       value_display='ON' if value else 'OFF')

    @app.route('/api/discrete/<address>', methods=['GET'])
    def read_discrete(address):
        """Read discrete input"""
        station = station_from()
        with client_lock:
            result = client.read_discrete(address, station_number=station)
        return respond(result, address=address, station=station)

    return app
