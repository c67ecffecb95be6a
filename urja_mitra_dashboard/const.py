"""Constants for the Urja Mitra dashboard backend."""

DOMAIN = "urja_mitra_dashboard"
VERSION = "0.3.0"

# Configuration (environment variable names)
CONF_URL = "THINGSBOARD_URL"
CONF_TOKEN = "THINGSBOARD_TOKEN"
CONF_USERNAME = "THINGSBOARD_USERNAME"
CONF_PASSWORD = "THINGSBOARD_PASSWORD"
CONF_DEVICE_ID = "THINGSBOARD_DEVICE_ID"
CONF_USE_MOCK = "USE_MOCK_DATA"
CONF_HOST = "DASHBOARD_HOST"
CONF_PORT = "DASHBOARD_PORT"
CONF_TIMEOUT = "REQUEST_TIMEOUT"
CONF_SESSION_TIMEOUT = "SESSION_TIMEOUT"
CONF_COOKIE_SECURE = "SESSION_COOKIE_SECURE"
CONF_LOG_LEVEL = "LOG_LEVEL"

DEFAULT_DEVICE_ID = "06dfe980-ff8b-11f0-9ad3-05720371f07f"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_TIMEOUT = 10
MIN_TIMEOUT = 1
MAX_TIMEOUT = 120
DEFAULT_SESSION_TIMEOUT = 2 * 60 * 60
DEFAULT_LOG_LEVEL = "INFO"

SOURCE_LIVE = "live"
SOURCE_MOCK = "mock"

SESSION_COOKIE = "session_token"

STARTUP_MESSAGE = f"""
-------------------------------------------------------------------
Urja Mitra Dashboard
Version: {VERSION}
Telemetry backend for ThingsBoard devices
-------------------------------------------------------------------
"""
