from __future__ import annotations

import logging
import subprocess

from kapply_core.errors import CommandError

logger = logging.getLogger(__name__)


def redact(text: str, secret: str | None) -> str:
    return text.replace(secret, "***") if secret else text


def run_command(
    args: list[str],
    input: str | None = None,
    cwd: str | None = None,
    error_cls: type[CommandError] = CommandError,
    secret: str | None = None,
) -> str:
    """Run an external command and return its combined stdout/stderr.

    A non-zero exit raises ``error_cls`` carrying the same combined output, so
    callers can still record what the tool printed before it failed. ``secret``
    is masked in everything that is logged or raised.
    """
    shown = [redact(a, secret) for a in args]
    logger.debug("running %s", " ".join(shown))
    try:
        result = subprocess.run(
            args,
            input=input,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except FileNotFoundError as e:
        raise error_cls(shown, 127, redact(str(e), secret)) from e
    output = result.stdout or ""
    if result.returncode != 0:
        raise error_cls(shown, result.returncode, redact(output, secret))
    return output
