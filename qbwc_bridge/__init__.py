"""
Flask application factory for the QBWC bridge.

Creates the Flask application with the QBWC SOAP service and the REST front
door sharing one job queue and one session.
"""
import logging
from dataclasses import dataclass

from flask import Flask, Response, request
from spyne.server.wsgi import WsgiApplication

from .config import Settings, load_settings
from .logging_config import setup_logging
from .routes.api import api_bp, qwc_bp
from .services.job_queue import JobQueue
from .services.qbwc_service import QBWCDispatcher, build_soap_application
from .services.session import TicketSession

logger = logging.getLogger(__name__)


@dataclass
class BridgeState:
    settings: Settings
    queue: JobQueue
    session: TicketSession
    dispatcher: QBWCDispatcher


def create_app(settings=None, queue=None, configure_logging=True):
    """
    Application factory function.

    Args:
        settings: optional ``Settings``; defaults to the environment.
        queue: optional ``JobQueue`` to serve; a new one is created otherwise.
        configure_logging: set up console/file logging (disabled in tests).

    Returns:
        Flask application instance
    """
    if configure_logging:
        setup_logging()

    settings = settings or load_settings()
    queue = queue if queue is not None else JobQueue()
    session = TicketSession(settings.qbwc_username, settings.qbwc_password)
    dispatcher = QBWCDispatcher(queue, session, settings)

    flask_app = Flask(__name__)
    flask_app.extensions["qbwc_bridge"] = BridgeState(settings, queue, session, dispatcher)

    soap_app = build_soap_application(dispatcher)
    spyne_wsgi_app = WsgiApplication(soap_app)

    def qbwc_soap_endpoint():
        """Handle SOAP requests and WSDL generation for QBWC."""
        captured = {}

        def start_response(status, headers, exc_info=None):
            captured["status"] = status
            captured["headers"] = headers

        response_iterable = spyne_wsgi_app(request.environ, start_response)
        response_data = b"".join(response_iterable)
        status_code = int(captured.get("status", "200").split(" ", 1)[0])
        return Response(response_data, status=status_code, mimetype='text/xml')

    flask_app.add_url_rule(settings.soap_path, "qbwc_soap_endpoint", qbwc_soap_endpoint, methods=['POST', 'GET'])

    flask_app.register_blueprint(api_bp)
    flask_app.register_blueprint(qwc_bp)

    @flask_app.route('/health', methods=['GET'])
    def health_check():
        """Simple health check endpoint."""
        return {"status": "healthy", "service": "QBWC Bridge", "sessionActive": session.active}, 200

    @flask_app.route('/', methods=['GET'])
    def service_info():
        """Provide basic service information."""
        return {
            "service": "QuickBooks Web Connector Bridge",
            "soap_endpoint": settings.soap_path,
            "wsdl": f"{settings.soap_path}?wsdl",
            "qwc": "/generate-qwc",
            "queue": "/api/queue",
            "status": "running",
        }, 200

    logger.info(f"Flask app created. {settings.soap_path} POST and GET endpoint registered for Spyne.")
    return flask_app
