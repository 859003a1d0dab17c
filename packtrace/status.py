"""status.py - Side channel for packtrace's own diagnostics.

packtrace runs inside ``logging.Formatter.format``. Reporting its own trouble
through the logger tree could route the report back into the handler that is
busy formatting, so the ``packtrace.status`` logger does not propagate. With
no handler attached, the logging module falls back to ``logging.lastResort``
(stderr, WARNING and above).
"""

import logging

logger = logging.getLogger("packtrace.status")
logger.propagate = False
