"""os-release reader - extracts the distribution ID and VERSION_ID"""
import logging
import re
from pathlib import Path
from typing import Dict, Optional

from .schemas import OSIdentity

OS_RELEASE_PATH = "/etc/os-release"

MAX_KEY_LEN = 64
MAX_VALUE_LEN = 64

WANTED_KEYS = ("ID", "VERSION_ID")

KEY_RE = re.compile(r"^\s*([A-Za-z0-9_]{1,%d})=" % MAX_KEY_LEN)
UNQUOTED_RE = re.compile(r"[^\s;]*")


def parse_value(raw: str, limit: int = MAX_VALUE_LEN) -> str:
    """Parse the right-hand side of a KEY=value line.

    Quoted values run to the matching quote (or end of line), unquoted ones stop
    at whitespace or ';'. Escapes are not interpreted. Longer values are cut at
    ``limit`` characters.
    """
    if raw[:1] in ("'", '"'):
        end = raw.find(raw[0], 1)
        value = raw[1:end] if end != -1 else raw[1:]
    else:
        value = UNQUOTED_RE.match(raw).group(0)
    return value[:limit]


def parse_os_release(text: str) -> Dict[str, str]:
    """Return the wanted keys found in os-release content; first occurrence wins"""
    found: Dict[str, str] = {}
    for line in text.splitlines():
        m = KEY_RE.match(line)
        if not m:
            continue
        key = m.group(1)
        if key not in WANTED_KEYS or key in found:
            continue
        found[key] = parse_value(line[m.end():].rstrip("\r\n"))
    return found


def read_os_identity(path: str = OS_RELEASE_PATH,
                     logger: Optional[logging.Logger] = None) -> OSIdentity:
    """Read host OS identity; any problem degrades to empty fields with a warning"""
    logger = logger or logging.getLogger("apkmon.os_release")

    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning(f"failed to read {path}: {e.strerror or e}")
        return OSIdentity()

    found = parse_os_release(text)
    if not found:
        logger.warning(f"no ID or VERSION_ID found in {path}")
        return OSIdentity()

    return OSIdentity(id=found.get("ID", ""), version_id=found.get("VERSION_ID", ""))
