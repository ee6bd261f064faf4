"""
Configuration module for the QBWC bridge.

Contains all configuration variables, paths, and environment variable mappings.
Module-level values are read once from the environment; ``load_settings``
bundles them into a ``Settings`` object that the app factory hands to the
SOAP service and REST routes.
"""
import os
from dataclasses import dataclass, replace
from pathlib import Path

# Project Root Path
PROJECT_ROOT = Path(__file__).parent.parent.absolute()

# QBWC Configuration
QBWC_USERNAME = os.environ.get("QBWC_USERNAME", "qbuser")
QBWC_PASSWORD = os.environ.get("QBWC_PASSWORD", "qbpass")
QBWC_COMPANY_FILE = os.environ.get("QBWC_COMPANY_FILE", "")  # Empty = use currently open company file

# Server Configuration
SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
SERVER_PORT = int(os.environ.get("SERVER_PORT", "8080"))
FLASK_DEBUG = os.environ.get("FLASK_DEBUG", "False").lower() in ("true", "1", "yes")
SERVER_URL = os.environ.get("SERVER_URL", f"http://localhost:{SERVER_PORT}")

# SOAP Service Configuration
SOAP_PATH = os.environ.get("SOAP_PATH", "/quickbooks")  # The path where the SOAP service will be available
SOAP_NAMESPACE = "http://developer.intuit.com/"
SERVER_VERSION = os.environ.get("SERVER_VERSION", "1.0.0")
QBXML_VERSION = os.environ.get("QBXML_VERSION", "13.0")

# Application Information (used for the .qwc descriptor)
APP_NAME = os.environ.get("APP_NAME", "QB Data Sync")
APP_DESCRIPTION = os.environ.get("APP_DESCRIPTION", "QuickBooks Data Synchronization Service")
APP_SUPPORT = os.environ.get("APP_SUPPORT", f"{SERVER_URL}/support")
QWC_RUN_EVERY_MINUTES = int(os.environ.get("QWC_RUN_EVERY_MINUTES", "30"))

# File Paths
LOG_DIR = Path(os.environ.get("LOG_DIR", PROJECT_ROOT / "logs"))
LOG_FILE_NAME = "qbwc_debug.log"
LOG_FILE_PATH = LOG_DIR / LOG_FILE_NAME
LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG").upper()


@dataclass(frozen=True)
class Settings:
    """Runtime settings shared by the SOAP service and the REST front door."""

    qbwc_username: str = QBWC_USERNAME
    qbwc_password: str = QBWC_PASSWORD
    company_file: str = QBWC_COMPANY_FILE
    server_url: str = SERVER_URL
    soap_path: str = SOAP_PATH
    server_version: str = SERVER_VERSION
    qbxml_version: str = QBXML_VERSION
    app_name: str = APP_NAME
    app_description: str = APP_DESCRIPTION
    app_support: str = APP_SUPPORT
    run_every_minutes: int = QWC_RUN_EVERY_MINUTES


def load_settings(**overrides) -> Settings:
    """Build settings from the environment, applying keyword overrides."""
    settings = Settings()
    if overrides:
        settings = replace(settings, **overrides)
    return settings
