import getpass
import logging
import socket
from datetime import datetime
from typing import Optional

logger = logging.getLogger("compose-snapshot")


def created_by() -> str:
    """Return ``user@host`` for the current process."""
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return f"{user}@{socket.gethostname()}"


def detect_host_address() -> Optional[str]:
    """Best-effort lookup of this machine's primary IPv4 address.

    Returns:
        Dotted-quad address, or None when only loopback can be found
    """
    # Connecting a UDP socket selects the outbound interface without sending anything
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("10.255.255.255", 1))
            address = sock.getsockname()[0]
    except OSError:
        try:
            address = socket.gethostbyname(socket.gethostname())
        except OSError:
            return None

    if not address or address.startswith("127.") or address == "0.0.0.0":
        return None
    return address


def timestamp_slug(now: Optional[datetime] = None) -> str:
    """Timestamp used in default archive names: YYYYmmdd_HHMMSS."""
    return (now or datetime.now()).strftime("%Y%m%d_%H%M%S")


def format_size(size_bytes: int) -> str:
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes} bytes"
