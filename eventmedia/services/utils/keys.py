"""Storage key generation"""

import os
import re
import uuid
from datetime import datetime, timezone
from typing import Optional

KEY_ROOT = "events"

_UNSAFE_CHARS = re.compile(r"[^a-z0-9._-]")


def clean_filename_base(filename: str) -> str:
    """
    Reduce a client filename to a URL- and filesystem-safe slug.

    The directory part and the final extension are dropped, the rest is
    lowercased with spaces turned into dashes. Any other character outside
    [a-z0-9._-] also becomes a dash.
    """
    base = os.path.basename(filename.replace("\\", "/"))
    base, _ = os.path.splitext(base)
    base = base.replace(" ", "-").lower()
    base = _UNSAFE_CHARS.sub("-", base)
    if base in ("", ".", ".."):
        return "image"
    return base


def generate_image_key(filename: str, now: Optional[datetime] = None) -> str:
    """
    Generate a unique key prefix for one upload.

    Args:
        filename: Original client filename
        now: Timestamp used for the date path (default: current UTC time)

    Returns:
        Key prefix like events/2024/05/17/my-photo-1a2b3c4d
    """
    now = now or datetime.now(timezone.utc)
    suffix = uuid.uuid4().hex[:8]
    return f"{KEY_ROOT}/{now:%Y/%m/%d}/{clean_filename_base(filename)}-{suffix}"
