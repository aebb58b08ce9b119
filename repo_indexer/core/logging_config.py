# repo_indexer/core/logging_config.py
"""
Logging configuration for the repo-indexer backend.

Everything goes through the stdlib root logger; modules use
``logging.getLogger(__name__)``. Access tokens travel through query strings,
headers and webhook payloads, so every handler carries a masking filter.
"""

import logging
import re
import sys

_logging_configured = False


class TokenMaskingFilter(logging.Filter):
    """Mask OAuth/JWT tokens in log messages and their args."""

    PATTERNS = (
        # ?token=... / &token=... / access_token=...
        re.compile(r"((?:\?|&|\b)(?:access_)?token=)([^&\s\"']+)"),
        # Authorization: Bearer ... / token ...
        re.compile(r"((?:Bearer|Authorization:\s*token)\s+)([A-Za-z0-9_\-\.]{8,})"),
        # GitHub token prefixes (gho_, ghp_, ghu_, ghs_, ghr_, github_pat_)
        re.compile(r"()\b((?:gh[opusr]_|github_pat_)[A-Za-z0-9_]{8,})"),
    )

    @classmethod
    def mask(cls, text: str) -> str:
        for pattern in cls.PATTERNS:
            text = pattern.sub(lambda m: f"{m.group(1)}{m.group(2)[:4]}***", text)
        return text

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)

        if record.args:
            if isinstance(record.args, tuple):
                record.args = tuple(
                    self.mask(arg) if isinstance(arg, str) else arg for arg in record.args
                )
            elif isinstance(record.args, dict):
                record.args = {
                    k: self.mask(v) if isinstance(v, str) else v for k, v in record.args.items()
                }
        return True


def setup_logging(level: str = "INFO", force_reconfigure: bool = False):
    """Configure the root logger once; later calls are no-ops unless forced."""
    global _logging_configured
    if _logging_configured and not force_reconfigure:
        return

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s [%(name)s] %(message)s")
    )
    handler.addFilter(TokenMaskingFilter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Uvicorn access lines include the OAuth callback query strings
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).addFilter(TokenMaskingFilter())

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _logging_configured = True
