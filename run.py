"""
Main entry point for the QBWC bridge.

This script initializes the Flask application using the app factory pattern
and runs the development server.
"""
import logging
import sys

from qbwc_bridge import create_app
from qbwc_bridge.config import FLASK_DEBUG, SERVER_HOST, SERVER_PORT, SOAP_PATH

logger = logging.getLogger("qbwc_bridge")


def main():
    """Main application entry point."""
    try:
        # Create the Flask app instance using the factory
        flask_app = create_app()

        logger.info(f"QBWC bridge starting on http://{SERVER_HOST}:{SERVER_PORT}{SOAP_PATH}")
        logger.info(f"Flask DEBUG mode: {FLASK_DEBUG}")

        # The queue lives in process memory, so the reloader would drop it
        flask_app.run(
            host=SERVER_HOST,
            port=SERVER_PORT,
            debug=FLASK_DEBUG,
            use_reloader=False,
        )

    except KeyboardInterrupt:
        logger.info("Server shutdown requested by user")
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
