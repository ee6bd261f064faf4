"""
Logging configuration for the QBWC bridge.

Provides console and file logging with detailed formatting for SOAP
interactions, queue transitions and QBXML generation.
"""
import logging

from .config import LOG_DIR, LOG_FILE_PATH, LOG_LEVEL

LOGGER_NAME = 'qbwc_bridge'


def setup_logging(level=None, log_to_file=True):
    """
    Set up logging for the application.

    Creates a console handler and, unless disabled, a file handler under
    ``LOG_DIR``. Safe to call more than once: existing handlers are replaced.
    """
    level = level or LOG_LEVEL

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Clear any existing handlers to prevent duplicates
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - CONSOLE - %(name)s - %(module)s - %(funcName)s - %(lineno)d - %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    file_handler = None
    if log_to_file:
        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(LOG_FILE_PATH, mode='a', encoding='utf-8')
            file_handler.setLevel(level)
            file_formatter = logging.Formatter(
                '%(asctime)s - %(levelname)s - FILE - %(name)s - %(module)s - %(funcName)s - %(lineno)d - %(message)s'
            )
            file_handler.setFormatter(file_formatter)
            logger.addHandler(file_handler)

            logger.info(f"File logging initialized. Debug messages will be written to {LOG_FILE_PATH}")
        except OSError as e:
            logger.error(f"Failed to initialize file logging to {LOG_FILE_PATH}: {e}", exc_info=True)

    # Child loggers for the protocol engine
    logging.getLogger(f'{LOGGER_NAME}.services.qbwc_service').setLevel(level)
    logging.getLogger(f'{LOGGER_NAME}.services.job_queue').setLevel(level)
    logging.getLogger(f'{LOGGER_NAME}.services.session').setLevel(level)

    # Request/response logging for debugging SOAP interactions
    spyne_logger = logging.getLogger('spyne.protocol.xml')
    spyne_logger.setLevel(level)
    spyne_logger.handlers.clear()
    spyne_logger.addHandler(console_handler)
    if file_handler is not None:
        spyne_logger.addHandler(file_handler)

    return logger
