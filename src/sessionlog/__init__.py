"""sessionlog - hook-driven capture of AI assistant sessions.

Records prompts, responses, tool use and subagents as one markdown log
per session, and recovers sessions that ended without a clean shutdown.
"""

from importlib.metadata import PackageNotFoundError, version

from sessionlog.config import SessionLogConfig
from sessionlog.recorder import SessionRecorder
from sessionlog.redaction import Redactor

try:
    __version__ = version("sessionlog")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["SessionLogConfig", "SessionRecorder", "Redactor", "__version__"]
