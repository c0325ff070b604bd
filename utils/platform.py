"""
Platform Utilities - IST timezone, disk check.

Player rows, game logs and provider health timestamps all use now_ist()
so they line up regardless of where the server runs.
"""
import shutil
from datetime import datetime

import pytz


# ============================================
# IST TIMEZONE
# ============================================

IST = pytz.timezone('Asia/Kolkata')


def now_ist() -> datetime:
    """Get current datetime in IST regardless of server timezone."""
    return datetime.now(IST)


# ============================================
# DISK SPACE CHECK
# ============================================

def check_disk_space(path, min_mb=50) -> bool:
    """
    Check if there's enough disk space for SQLite writes.

    Args:
        path: Directory or file path to check
        min_mb: Minimum free space in MB (default 50MB)

    Returns:
        True if sufficient space available, True on error (don't block writes)
    """
    try:
        usage = shutil.disk_usage(str(path))
        free_mb = usage.free / (1024 * 1024)
        return free_mb >= min_mb
    except OSError:
        return True
