"""Constants for the ThingsBoard client."""

# REST API Endpoints
ENDPOINT_LOGIN = "/api/auth/login"
ENDPOINT_TOKEN_REFRESH = "/api/auth/token"
ENDPOINT_TENANT_DEVICES = "/api/tenant/devices"
ENDPOINT_DEVICE = "/api/device/{device_id}"
ENDPOINT_ALARMS = "/api/alarms"
ENDPOINT_DEVICE_ALARMS = "/api/alarm/DEVICE/{device_id}"
ENDPOINT_TIMESERIES = "/api/plugins/telemetry/DEVICE/{device_id}/values/timeseries"
ENDPOINT_RPC_TWOWAY = "/api/rpc/twoway/{device_id}"

# ThingsBoard sends the JWT in its own header instead of Authorization
AUTH_HEADER = "X-Authorization"

# Upstream access tokens live ~2.5h; treat them as valid for 2h
TOKEN_LIFETIME_SECONDS = 2 * 60 * 60
# Refresh this long before expiry (clock skew, request latency)
TOKEN_REFRESH_MARGIN_SECONDS = 60

DEFAULT_PAGE_SIZE = 50
DEFAULT_TIMEOUT = 10

TELEMETRY_KEYS = (
    "temperature",
    "humidity",
    "voltage",
    "current",
    "power",
    "energy",
    "energyKwhToday",
    "rssi",
)

HISTORY_WINDOW_MS = 24 * 60 * 60 * 1000
HISTORY_LIMIT = 200
HISTORY_30D_WINDOW_MS = 30 * 24 * 60 * 60 * 1000
HISTORY_30D_LIMIT = 1000
