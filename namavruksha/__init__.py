"""Devotion statistics and flipbook reading sessions for the Namavruksha community app."""

from .config import Config, load_config
from .errors import FetchError, ParseError, ReaderError
from .models import Account, CountEntry, StatsBucket, User
from .stats import compute_devotee_adjusted_total, compute_stats, sum_by_date_range

__all__ = [
    "Account",
    "Config",
    "CountEntry",
    "FetchError",
    "ParseError",
    "ReaderError",
    "StatsBucket",
    "User",
    "compute_devotee_adjusted_total",
    "compute_stats",
    "load_config",
    "sum_by_date_range",
]
