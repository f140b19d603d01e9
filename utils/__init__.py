"""Utility modules for poolwatch."""
from utils.logger import setup_logging
from utils.formatters import format_number, format_timestamp, iso_utc, time_ago
from utils.http_client import HTTPClient, APIError
from utils.keyed_lock import KeyedLock
from utils.retry import RetryPolicy, RetryExhausted, retry_call
