"""Utilities for input sanitization."""

import re

MAX_LOG_VALUE_LENGTH = 512


def sanitize_for_log(input_str: str, max_length: int = MAX_LOG_VALUE_LENGTH) -> str:
    """
    Sanitize request-derived text for logging to prevent Log Injection (CWE-117).

    Control characters are escaped and overly long values are truncated.
    """
    if not input_str:
        return ""
    escaped = re.sub(r"[\x00-\x1f\x7f]", lambda m: f"\\x{ord(m.group(0)):02x}", str(input_str))
    if len(escaped) > max_length:
        return f"{escaped[:max_length]}...(truncated)"
    return escaped
