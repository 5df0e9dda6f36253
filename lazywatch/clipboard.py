"""System clipboard access through the platform's copy command."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys

logger = logging.getLogger(__name__)

CLIPBOARD_TIMEOUT_SECONDS = 5.0


def clipboard_commands() -> list[list[str]]:
    """Candidate copy commands for this platform, in preference order."""
    if sys.platform == "darwin":
        return [["pbcopy"]]
    if os.name == "nt":
        return [["clip"]]
    return [
        ["xclip", "-selection", "clipboard"],
        ["xsel", "--clipboard", "--input"],
        ["wl-copy"],
    ]


def copy_to_clipboard(text: str) -> bool:
    """Copy ``text`` to the clipboard; ``True`` when a copy command succeeded."""
    for command in clipboard_commands():
        if shutil.which(command[0]) is None:
            continue
        try:
            proc = subprocess.run(
                command,
                input=text,
                text=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=CLIPBOARD_TIMEOUT_SECONDS,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.debug("clipboard command %s failed: %s", command[0], exc)
            continue
        if proc.returncode == 0:
            return True
        logger.debug("clipboard command %s exited with %d", command[0], proc.returncode)
    logger.info("no clipboard command succeeded")
    return False


__all__ = ["clipboard_commands", "copy_to_clipboard"]
