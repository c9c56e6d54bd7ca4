"""Protocol constants for the request engine."""

from enum import Enum


DEFAULT_PORTS: dict[str, int] = {
    "http": 80,
    "https": 443,
    "ssh": 22,
    "ldap": 389,
    "sldap": 689,
    "ftp": 20,
    "ftps": 989,
    "sftp": 21,
}

# Port used when a protocol has no entry in the table
FALLBACK_PORT = 80

# Protocols that never carry a port
PORTLESS_PROTOCOLS = frozenset({"file"})

MIN_PORT = 1
MAX_PORT = 65535

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_HOSTNAME = "localhost"
DEFAULT_ACCESS_TOKEN_TYPE = "Bearer"
MAX_REDIRECTS = 10

HTTP_METHODS = frozenset(
    {"OPTIONS", "HEAD", "GET", "POST", "PUT", "DELETE", "TRACE", "CONNECT"}
)

# Methods that must not alter server state
IDEMPOTENT_METHODS = frozenset({"OPTIONS", "HEAD", "GET"})


class CacheMode(str, Enum):
    """Fetch cache modes."""

    DEFAULT = "default"
    NO_STORE = "no-store"
    RELOAD = "reload"
    NO_CACHE = "no-cache"
    FORCE_CACHE = "force-cache"
    ONLY_IF_CACHED = "only-if-cached"


class CorsMode(str, Enum):
    """CORS modes."""

    CORS = "cors"
    NO_CORS = "no-cors"
    SAME_ORIGIN = "same-origin"


class RedirectMode(str, Enum):
    """Redirect handling policies."""

    FOLLOW = "follow"
    ERROR = "error"
    MANUAL = "manual"


class CredentialsMode(str, Enum):
    """Whether ambient credentials accompany a request."""

    OMIT = "omit"
    SAME_ORIGIN = "same-origin"
    INCLUDE = "include"


class ReferrerPolicy(str, Enum):
    """W3C referrer policies."""

    EMPTY = ""
    NO_REFERRER = "no-referrer"
    NO_REFERRER_WHEN_DOWNGRADE = "no-referrer-when-downgrade"
    SAME_ORIGIN = "same-origin"
    ORIGIN = "origin"
    STRICT_ORIGIN = "strict-origin"
    ORIGIN_WHEN_CROSS_ORIGIN = "origin-when-cross-origin"
    STRICT_ORIGIN_WHEN_CROSS_ORIGIN = "strict-origin-when-cross-origin"
    UNSAFE_URL = "unsafe-url"


class QueryMode(str, Enum):
    """Value assigned to bare query keys such as ``?flag``."""

    BOOLEAN = "boolean"
    STRING = "string"
    NULL = "null"


class AuthType(str, Enum):
    """Kind of credential a Credential currently holds."""

    NONE = "none"
    BASIC = "basic"
    TOKEN = "token"


class KeyCase(str, Enum):
    """Key normalization applied by parameter stores."""

    NONE = "none"
    LOWER = "lower"
    UPPER = "upper"
