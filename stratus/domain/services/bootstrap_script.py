"""
Bootstrap Script Composition

Turns the key and script options of a template into one POSIX shell script
that is uploaded and run once the node's SSH port is open.
"""

from __future__ import annotations
import shlex
from typing import Optional

from stratus.domain.entities.template import TemplateOptions


def _heredoc(path: str, content: str, marker: str, append: bool = False) -> str:
    redirect = ">>" if append else ">"
    body = content if content.endswith("\n") else content + "\n"
    return f"cat {redirect} {path} <<'{marker}'\n{body}{marker}\n"


def compose_bootstrap(options: TemplateOptions, account: str = "root") -> Optional[str]:
    """
    Return the bootstrap script for the options, or None if there is nothing to run.

    The script runs as the login account so keys land in that account's
    home; only the caller script is escalated with sudo for non-root accounts.
    """
    if not options.has_bootstrap:
        return None

    lines = ["#!/bin/sh", "set -e", "umask 077", "mkdir -p ~/.ssh"]
    if options.public_key:
        lines.append(
            _heredoc("~/.ssh/authorized_keys", options.public_key, "END_OF_PUBLIC_KEY", append=True)
        )
        lines.append("chmod 600 ~/.ssh/authorized_keys")
    if options.private_key:
        lines.append(_heredoc("~/.ssh/id_rsa", options.private_key, "END_OF_PRIVATE_KEY"))
        lines.append("chmod 600 ~/.ssh/id_rsa")
    if options.script:
        lines.append(_heredoc("~/.stratus-init.sh", options.script, "END_OF_INIT_SCRIPT"))
        lines.append("chmod 700 ~/.stratus-init.sh")
        runner = "sh" if account == "root" else "sudo sh"
        lines.append(f"exec {runner} ~/.stratus-init.sh")
    return "\n".join(lines) + "\n"


def script_command(path: str, run_as_root: bool, account: str) -> str:
    """Command that runs an uploaded script, via sudo for non-root accounts."""
    quoted = shlex.quote(path)
    if run_as_root and account != "root":
        return f"sudo sh {quoted}"
    return f"sh {quoted}"
