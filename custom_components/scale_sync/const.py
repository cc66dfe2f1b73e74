"""Constants for the scale_sync integration."""

DOMAIN = "scale_sync"

# Bluetooth Weight Scale service and Weight Measurement characteristic
WEIGHT_SERVICE_UUID = "0000181d-0000-1000-8000-00805f9b34fb"
WEIGHT_MEASUREMENT_UUID = "00002a9d-0000-1000-8000-00805f9b34fb"

CONF_TOKEN = "token"
CONF_SYNC_INTERVAL = "sync_interval"
CONF_SESSION_TIMEOUT = "session_timeout"

# Minutes between scheduled syncs; 0 disables the schedule
DEFAULT_SYNC_INTERVAL = 60
# Seconds from session start until the whole negotiation is abandoned
DEFAULT_SESSION_TIMEOUT = 20

LOGIN_PATH = "/api/login"
WEIGHTS_PATH = "/api/weights"
REQUEST_TIMEOUT = 20

STORAGE_KEY = f"{DOMAIN}.history"
STORAGE_VERSION = 1
STORAGE_SAVE_DELAY = 5

SERVICE_SYNC_NOW = "sync_now"

NOTIFICATION_ID = f"{DOMAIN}_result"
