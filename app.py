"""
Bot Control Panel - Flask Application

Main entry point. Runs a Flask web server with Socket.IO support: the
browser opens a control socket to start bots against a game server, watch
their chat and telemetry, and send chat, console commands and movement.
REST endpoints expose the stored connection records, chat and logs.
"""

if __name__ == '__main__':
    # Must run before anything imports socket/threading
    import eventlet
    eventlet.monkey_patch()

import logging
import os
from functools import partial

from flask import Flask, jsonify, request
from flask_socketio import SocketIO

from config import config
from engine import (
    BotJournal, CommandExecutor, DisconnectReason, RelayHandler,
    SessionController, SocketIOTransport, load_client_factory,
)
from engine.simulated_client import SimulatedClient
from persistence import BotRepository, init_db

VERSION = '1.0.0'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def setup_logging():
    """Log to logs/bot_panel.log and the console"""
    os.makedirs(config.LOG_DIR, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(os.path.join(config.LOG_DIR, 'bot_panel.log')),
            logging.StreamHandler()
        ]
    )


def validate_connection_request(body) -> list:
    """Return a list of {field, message} problems with a POST /api/connections body"""
    if not isinstance(body, dict):
        return [{'field': None, 'message': 'Expected a JSON object'}]

    errors = []
    limits = {'username': 100, 'serverIp': 255, 'version': 50}
    for field, max_len in limits.items():
        value = body.get(field)
        if not isinstance(value, str) or not value.strip():
            errors.append({'field': field, 'message': 'Required'})
        elif len(value) > max_len:
            errors.append({'field': field, 'message': f'Must be at most {max_len} characters'})
    return errors


def register_routes(app: Flask, repository: BotRepository, controller: SessionController, transport):
    """REST API for connection records, chat history and logs"""

    @app.route('/health')
    def health():
        """Health check endpoint for monitoring"""
        return {
            'status': 'ok',
            'activeSessions': len(controller.active_ids()),
            'openSockets': transport.open_count(),
            'version': VERSION,
        }

    @app.route('/api/connections', methods=['POST'])
    def create_connection():
        body = request.get_json(silent=True)
        errors = validate_connection_request(body)
        if errors:
            return jsonify({'message': 'Invalid connection data', 'errors': errors}), 400
        try:
            connection = repository.create_connection(
                body['username'].strip(), body['serverIp'].strip(), body['version'].strip())
        except Exception as e:
            logger.error(f"Failed to create connection: {e}", exc_info=True)
            return jsonify({'message': 'Failed to create connection'}), 500
        return jsonify(connection)

    @app.route('/api/connections/<connection_id>')
    def get_connection(connection_id):
        try:
            connection = repository.get_connection(connection_id)
        except Exception as e:
            logger.error(f"Failed to get connection {connection_id}: {e}", exc_info=True)
            return jsonify({'message': 'Failed to get connection'}), 500
        if connection is None:
            return jsonify({'message': 'Connection not found'}), 404
        return jsonify(connection)

    @app.route('/api/connections/<connection_id>/messages')
    def get_messages(connection_id):
        try:
            return jsonify(repository.get_chat_messages(connection_id))
        except Exception as e:
            logger.error(f"Failed to get messages for {connection_id}: {e}", exc_info=True)
            return jsonify({'message': 'Failed to get messages'}), 500

    @app.route('/api/connections/<connection_id>/logs')
    def get_logs(connection_id):
        try:
            return jsonify(repository.get_logs(connection_id))
        except Exception as e:
            logger.error(f"Failed to get logs for {connection_id}: {e}", exc_info=True)
            return jsonify({'message': 'Failed to get logs'}), 500

    @app.route('/api/admin/connections')
    def list_connections():
        try:
            connections = repository.list_all_connections()
        except Exception as e:
            logger.error(f"Failed to list connections: {e}", exc_info=True)
            return jsonify({'message': 'Failed to get connections'}), 500
        active = set(controller.active_ids())
        return jsonify([dict(c, isActive=c['id'] in active) for c in connections])

    @app.route('/api/admin/connections/<connection_id>', methods=['DELETE'])
    def terminate_connection(connection_id):
        try:
            if controller.disconnect(connection_id, DisconnectReason.ADMIN):
                logger.info(f"🛑 Bot {connection_id} terminated by admin")
        except Exception as e:
            logger.error(f"Failed to terminate bot {connection_id}: {e}", exc_info=True)
            return jsonify({'message': 'Failed to terminate bot'}), 500
        return jsonify({'success': True, 'message': 'Bot terminated successfully'})


def register_socket_handlers(socketio: SocketIO, relay: RelayHandler):
    """Control socket events; every frame arrives on the default 'message' event"""

    @socketio.on('connect')
    def handle_connect(auth=None):
        relay.on_open(request.sid)

    @socketio.on('disconnect')
    def handle_disconnect(reason=None):
        relay.on_close(request.sid)

    @socketio.on('message')
    def handle_message(data):
        relay.on_frame(request.sid, data)


def create_app(cfg=config, database_url: str = None, client_factory=None,
               async_mode: str = 'eventlet'):
    """
    Build the Flask app, Socket.IO server and session components.

    Args:
        cfg: Config instance
        database_url: Override for cfg.DATABASE_URL
        client_factory: Protocol client backend; defaults to cfg.BOT_CLIENT_FACTORY
            or the built-in simulator
        async_mode: Socket.IO async mode ('eventlet' in production)

    Returns:
        (app, socketio); the controller and relay are in app.extensions['bot_panel']
    """
    app = Flask(__name__)
    app.config['SECRET_KEY'] = cfg.SECRET_KEY

    socketio = SocketIO(app, cors_allowed_origins="*", async_mode=async_mode)

    init_db(database_url or cfg.DATABASE_URL)
    repository = BotRepository()
    journal = BotJournal(repository)
    transport = SocketIOTransport(socketio)

    if client_factory is None:
        if cfg.BOT_CLIENT_FACTORY:
            client_factory = load_client_factory(cfg.BOT_CLIENT_FACTORY)
        else:
            logger.info("No protocol client backend configured, using the simulator")
            client_factory = partial(SimulatedClient,
                                     start_task=socketio.start_background_task,
                                     sleep=socketio.sleep)

    controller = SessionController(
        transport, journal, client_factory,
        start_task=socketio.start_background_task,
        sleep=socketio.sleep,
        telemetry_interval=cfg.TELEMETRY_INTERVAL,
        default_port=cfg.DEFAULT_SERVER_PORT,
        auth_mode=cfg.AUTH_MODE,
    )
    executor = CommandExecutor(
        controller, journal,
        start_task=socketio.start_background_task,
        sleep=socketio.sleep,
        jump_pulse=cfg.JUMP_PULSE_SECONDS,
    )
    relay = RelayHandler(controller, executor, transport)

    register_routes(app, repository, controller, transport)
    register_socket_handlers(socketio, relay)

    app.extensions['bot_panel'] = {
        'repository': repository,
        'controller': controller,
        'executor': executor,
        'relay': relay,
        'transport': transport,
    }
    return app, socketio


if __name__ == '__main__':
    setup_logging()
    logger.info(f'=' * 60)
    logger.info(f'🤖 Bot Control Panel Starting')
    logger.info(f'Version: {VERSION}')
    logger.info(f'Host: {config.HOST}:{config.PORT}')
    logger.info(f'Database: {config.DATABASE_URL}')
    logger.info(f'Client backend: {config.BOT_CLIENT_FACTORY or "simulated"}')
    logger.info(f'=' * 60)

    app, socketio = create_app()
    try:
        socketio.run(
            app,
            host=config.HOST,
            port=config.PORT,
            debug=config.DEBUG
        )
    finally:
        app.extensions['bot_panel']['controller'].shutdown()
        logger.info("Bot Control Panel stopped")
