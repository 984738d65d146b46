"""sessionlog shared utilities library.

Cross-cutting helpers used across the engine:
- retry: bounded read-after-write retry loop for cross-process races
- files: best-effort deletion and atomic writes
"""

from sessionlog.lib.files import atomic_write_text, discard
from sessionlog.lib.retry import retry

__all__ = [
    "atomic_write_text",
    "discard",
    "retry",
]
