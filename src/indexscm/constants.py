"""
Constants and configuration values for indexscm.

This module contains the listing conventions, timeouts, file names and other
constants used throughout the application.
"""

# Directory listing conventions
PATH_SEPARATOR = "/"
PARENT_DIR = "../"
HASH_FILE_EXTENSIONS = frozenset({"md5", "sha1"})

# Autoindex timestamp format (e.g. "03-Jan-2016 14:15"); the fixed width is the
# length of the Joda-style pattern "dd-MMM-yyyy HH:mm".
LISTING_DATE_PATTERN = "dd-MMM-yyyy HH:mm"
LISTING_DATE_FORMAT = "%d-%b-%Y %H:%M"
LISTING_DATE_WIDTH = len(LISTING_DATE_PATTERN)
# strptime tolerates extra whitespace and unpadded fields; this does not
LISTING_DATE_SHAPE = r"[0-9]{2}-[A-Za-z]{3}-[0-9]{4} [0-9]{2}:[0-9]{2}"

# Content-Type charset parameter
CHARSET_KEY = "charset="

# HTML parser used by BeautifulSoup
HTML_PARSER = "html.parser"

# Network timeouts (in seconds); -1 disables the timeout
DEFAULT_CONNECT_TIMEOUT = 240
DEFAULT_SOCKET_TIMEOUT = 240
NO_TIMEOUT = -1

# Transport defaults
DEFAULT_CONNECT_RETRIES = 0
DEFAULT_MAX_WORKERS = 1
DEFAULT_CHUNK_SIZE = 8192
ALLOWED_URL_SCHEMES = ("http", "https")

# Temporary download suffix
TEMP_FILE_SUFFIX = ".part"

# Configuration
APP_NAME = "indexscm"
CONFIG_FILE_NAME = "config.yaml"
CONFIG_PATH_ENV_VAR = "INDEXSCM_CONFIG"

# Validation messages
MSG_URL_NOT_SPECIFIED = "URL not specified"
MSG_URL_UNKNOWN_SCHEME = "URL with unknown scheme"
MSG_URL_NO_TRAILING_SLASH = "URL must end with a slash"
MSG_INVALID_TIMEOUT = "Invalid timeout value. Must be an integer > 0 or -1."

# Logging configuration
LOGGER_NAME = "indexscm"
LOG_LEVEL_ENV_VAR = "INDEXSCM_LOG_LEVEL"
LOG_FILE_NAME = "indexscm.log"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5
