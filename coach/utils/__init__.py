# Utils package for the coach engine

from .dates import as_naive_utc, utc_now
from .text import render, stable_digest

__all__ = ['as_naive_utc', 'render', 'stable_digest', 'utc_now']
