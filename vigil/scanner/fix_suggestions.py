# Vigil: Static Security Analyzer for Python
# Copyright (C) 2026 Vigil Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""Auto-fix suggestions for Vigil issues.

Maps rule IDs to actionable remediation advice. With ``--fix`` every issue
gets its ``autofix`` populated before the report is generated, either from
the static table below or, when an LLM provider is configured, from the
provider's answer.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from vigil.models.issue import Issue
from vigil.scanner.llm_client import FIX_PROMPT, FixGenerationError, FixGenerator

logger = logging.getLogger(__name__)


# ── Rule → Fix mapping ──

RULE_FIXES: dict[str, str] = {
    "G101": (
        "Move the credential out of source code. Read it from an environment variable or a secrets "
        "manager at runtime, and rotate the exposed value."
    ),
    "G102": (
        "Bind to `127.0.0.1` (or a specific interface) instead of all interfaces. Expose the service "
        "through a reverse proxy or firewall rule if remote access is required."
    ),
    "G110": (
        "Bound the amount of decompressed data: read in fixed-size chunks and stop after a maximum "
        "total size, or pass an explicit size to `read()`."
    ),
    "G201": (
        "Use parameterized queries: pass values as the second argument of `execute()` "
        "(e.g. `cursor.execute(\"SELECT * FROM t WHERE id = ?\", (user_id,))`) instead of formatting them into the SQL."
    ),
    "G202": (
        "Use parameterized queries instead of concatenating values into the SQL string. "
        "Build dynamic identifiers from an allowlist."
    ),
    "G204": (
        "Use `subprocess.run()` with a list argument and `shell=False`. Validate every argument "
        "against an allowlist and pin the executable to an absolute, audited path."
    ),
    "G301": "Create directories with mode `0o750` or stricter, e.g. `os.makedirs(path, mode=0o750)`.",
    "G302": "Restrict permissions to `0o600` or stricter when calling `chmod`.",
    "G303": (
        "Use `tempfile.mkstemp()`, `tempfile.NamedTemporaryFile()` or `tempfile.TemporaryDirectory()` "
        "instead of predictable paths under a shared temp directory."
    ),
    "G306": "Create new files with mode `0o600` or stricter, e.g. `os.open(path, flags, 0o600)`.",
    "G401": (
        "Replace MD5/SHA1 with SHA-256 or stronger (`hashlib.sha256`), and DES/RC4/Blowfish with AES-GCM "
        "or ChaCha20-Poly1305. For non-security checksums pass `usedforsecurity=False`."
    ),
    "G402": (
        "Keep certificate verification enabled (`verify=True`, `check_hostname = True`, "
        "`verify_mode = ssl.CERT_REQUIRED`) and require TLS 1.2 or newer."
    ),
    "G403": "Generate RSA keys of at least 2048 bits (3072 or more for long-lived keys).",
    "G404": (
        "Use the `secrets` module (or `random.SystemRandom`) for tokens, passwords and any other "
        "security-sensitive randomness."
    ),
    "G501": "Remove the MD5 module import. Use `hashlib.sha256` or stronger.",
    "G502": "Remove the DES module import. Use AES-GCM from the `cryptography` package.",
    "G503": "Remove the RC4 module import. Use AES-GCM or ChaCha20-Poly1305.",
    "G504": "Remove the CGI handler. Serve the application through a WSGI/ASGI server instead.",
    "G505": "Remove the SHA1 module import. Use `hashlib.sha256` or stronger.",
}

# Message substrings that refine the per-rule advice. First match wins.
MESSAGE_FIXES: list[tuple[str, str]] = [
    ("shell=true", "Remove `shell=True`. Use a list argument with `shell=False` (the default). If shell features are needed, use `shlex.split()` on static commands."),
    ("mktemp", "Replace `tempfile.mktemp()` with `tempfile.mkstemp()` or `tempfile.NamedTemporaryFile()`. `mktemp` is deprecated and racy."),
    ("connection string", "Remove the password from the connection string. Build it at runtime from environment variables or a secrets manager."),
    ("_create_unverified_context", "Use `ssl.create_default_context()` instead of `ssl._create_unverified_context()`."),
]


def get_fix_for_issue(issue: Issue) -> Optional[str]:
    """Static fix suggestion for an issue, or None if no rule matches."""
    message = issue.message.lower()
    for match_str, fix in MESSAGE_FIXES:
        if match_str.lower() in message:
            return fix
    return RULE_FIXES.get(issue.rule_id)


def populate_fix_suggestions(issues: Iterable[Issue]) -> None:
    """Populate ``autofix`` on every issue from the static table.

    Modifies the objects in-place; an existing suggestion is kept.
    """
    for issue in issues:
        if issue.autofix is None:
            issue.autofix = get_fix_for_issue(issue)


def suggest_fixes(issues: list[Issue], generator: Optional[FixGenerator] = None) -> None:
    """Attach fix suggestions, asking ``generator`` when one is given.

    Answers are cached per issue message. After the first provider failure
    the remaining issues keep their static advice.
    """
    populate_fix_suggestions(issues)
    if generator is None:
        return

    answers: dict[str, str] = {}
    for issue in issues:
        if issue.message in answers:
            issue.autofix = answers[issue.message]
            continue
        try:
            answer = generator.generate(FIX_PROMPT.format(what=issue.message))
        except FixGenerationError as e:
            logger.warning("Fix generation failed, keeping static suggestions: %s", e)
            return
        answers[issue.message] = answer
        issue.autofix = answer
