"""Console logging with scope tags.

Only INFO_SCOPES are printed by default. Set DEBUG=true to see all scopes.
"""

import sys
from datetime import datetime
from typing import Any, Optional

from app.libs.config import get_settings

INFO_SCOPES = {
    "CONVERSION",   # Pipeline lifecycle
    "ADMIN",        # Admin mutations
    "SETUP",        # First-run setup
    "AUTH",         # Token rejections
}

# DEBUG-only scopes (hidden by default)
DEBUG_SCOPES = {
    "CODEGEN",
    "DB",
    "LIMITS",
}


def log(scope: str, message: str, data: Any = None, ref: Optional[str] = None) -> None:
    """
    Print a log line as `[HH:MM:SS] [SCOPE] [ref] message`.

    `ref` is a record id; only its first 8 characters are shown.
    """
    if not get_settings().DEBUG and scope not in INFO_SCOPES:
        return

    timestamp = datetime.now().strftime("%H:%M:%S")
    prefix = f"[{timestamp}] [{scope}]"

    if ref:
        prefix += f" [{str(ref)[:8]}]"

    print(f"{prefix} {message}")

    if data:
        print(f"  Data: {data}")

    sys.stdout.flush()
