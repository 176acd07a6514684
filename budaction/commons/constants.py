"""Constants and enums for budaction."""

from enum import Enum


class LogLevel(Enum):
    """Logging levels accepted by the configuration layer."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    NOTSET = "NOTSET"


class Environment(str, Enum):
    """Application environments with environment-specific logging defaults."""

    PRODUCTION = "PRODUCTION"
    DEVELOPMENT = "DEVELOPMENT"
    TESTING = "TESTING"

    @staticmethod
    def from_string(value: str) -> "Environment":
        """Convert a string representation to an `Environment` instance.

        Args:
            value: The string representation of the environment.

        Returns:
            The corresponding `Environment` instance.

        Raises:
            ValueError: If the string does not match any valid environment.
        """
        import re

        matches = re.findall(r"(?i)\b(dev|prod|test)(elop|elopment|uction|ing|er)?\b", value)

        env = matches[0][0].lower() if len(matches) else ""
        if env == "dev":
            return Environment.DEVELOPMENT
        elif env == "prod":
            return Environment.PRODUCTION
        elif env == "test":
            return Environment.TESTING
        else:
            raise ValueError(
                f"Invalid environment: {value}. Only the following environments are allowed: "
                f"{', '.join(map(str, Environment.__members__))}"
            )

    @property
    def log_level(self) -> LogLevel:
        """Return the logging level for the current environment."""
        return {"PRODUCTION": LogLevel.INFO}.get(self.value, LogLevel.DEBUG)

    @property
    def debug(self) -> bool:
        """Return whether debugging is enabled for the current environment."""
        return {"PRODUCTION": False}.get(self.value, True)


class ErrorCode(str, Enum):
    """Codes carried by every action error.

    Codes are compared as plain strings, so user code may raise codes that are
    not listed here.
    """

    INPUT_PARSE_ERROR = "INPUT_PARSE_ERROR"
    OUTPUT_PARSE_ERROR = "OUTPUT_PARSE_ERROR"
    ERROR = "ERROR"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    TIMEOUT = "TIMEOUT"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    METHOD_NOT_SUPPORTED = "METHOD_NOT_SUPPORTED"
    UNPROCESSABLE_CONTENT = "UNPROCESSABLE_CONTENT"
    TOO_MANY_REQUESTS = "TOO_MANY_REQUESTS"
    CLIENT_CLOSED_REQUEST = "CLIENT_CLOSED_REQUEST"


class HttpMethod(str, Enum):
    """HTTP methods an action can be routed on."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class InputType(str, Enum):
    """How an action expects its raw input to arrive."""

    JSON = "json"
    FORM = "form"  # Form mapping, flattened to a dict before validation


class InvocationStatus(str, Enum):
    """Lifecycle states of a client-side action invocation."""

    IDLE = "idle"
    LOADING = "loading"
    LOADING_OPTIMISTIC = "loading_optimistic"
    SUCCESS = "success"
    ERROR = "error"


# Codes that describe deterministic failures and are never retried
NON_RETRYABLE_CODES = frozenset({ErrorCode.INPUT_PARSE_ERROR.value, ErrorCode.OUTPUT_PARSE_ERROR.value})

# Methods whose requests may carry a body
BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Route ordering used by ActionRouter.all()
ALL_METHODS = (HttpMethod.GET, HttpMethod.POST, HttpMethod.DELETE, HttpMethod.PUT, HttpMethod.PATCH)

FORM_DATA_CONTENT_TYPE = "application/x-www-form-urlencoded"
MULTI_PART_CONTENT_TYPE = "multipart/form-data"

# Canonical token used to compare parameterised paths
PATH_PARAM_TOKEN = "{param}"

# Separator used to join refetch keys
ACTION_KEY_SEPARATOR = "<|break|>"
