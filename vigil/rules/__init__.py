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

"""Built-in rule registry.

Every entry maps a stable rule ID to a builder taking (rule_id, settings).
The engine builds a fresh instance per package lane, so builders must not
share mutable state between the instances they return.
"""

from vigil.engine.rule import RuleDefinition
from vigil.rules.blocklist import (
    CGI_MODULES,
    DES_MODULES,
    MD5_MODULES,
    RC4_MODULES,
    SHA1_MODULES,
    blocklist_rule,
)
from vigil.rules.credentials import HardcodedCredentials
from vigil.rules.crypto import WeakCryptoPrimitive, WeakKeySize, WeakRandom
from vigil.rules.decompression import DecompressionBomb
from vigil.rules.fileperms import ChmodPermissions, MkdirPermissions, WriteFilePermissions
from vigil.rules.network import BindAllInterfaces
from vigil.rules.sql import SqlStringConcat, SqlStringFormatting
from vigil.rules.subproc import SubprocessLaunch
from vigil.rules.tempfiles import PredictableTempFile
from vigil.rules.tls import InsecureTLS

RULE_DEFINITIONS: list[RuleDefinition] = [
    # misc
    RuleDefinition("G101", "Look for hardcoded credentials", HardcodedCredentials),
    RuleDefinition("G102", "Bind to all interfaces", BindAllInterfaces),
    RuleDefinition("G110", "Potential DoS vulnerability via decompression bomb", DecompressionBomb),
    # injection
    RuleDefinition("G201", "SQL query construction using format string", SqlStringFormatting),
    RuleDefinition("G202", "SQL query construction using string concatenation", SqlStringConcat),
    RuleDefinition("G204", "Audit use of command execution", SubprocessLaunch),
    # filesystem
    RuleDefinition("G301", "Poor file permissions used when creating a directory", MkdirPermissions),
    RuleDefinition("G302", "Poor file permissions used with chmod", ChmodPermissions),
    RuleDefinition("G303", "Creating tempfile using a predictable path", PredictableTempFile),
    RuleDefinition("G306", "Poor file permissions used when writing to a new file", WriteFilePermissions),
    # crypto
    RuleDefinition("G401", "Detect the usage of MD5, SHA1, DES or RC4", WeakCryptoPrimitive),
    RuleDefinition("G402", "Look for bad TLS connection settings", InsecureTLS),
    RuleDefinition("G403", "Ensure minimum RSA key length of 2048 bits", WeakKeySize),
    RuleDefinition("G404", "Insecure random number source (random)", WeakRandom),
    # blocklist
    RuleDefinition("G501", "Import blocklist: md5", blocklist_rule(MD5_MODULES)),
    RuleDefinition("G502", "Import blocklist: DES", blocklist_rule(DES_MODULES)),
    RuleDefinition("G503", "Import blocklist: RC4", blocklist_rule(RC4_MODULES)),
    RuleDefinition("G504", "Import blocklist: cgi", blocklist_rule(CGI_MODULES)),
    RuleDefinition("G505", "Import blocklist: sha1", blocklist_rule(SHA1_MODULES)),
]

RULES_BY_ID: dict[str, RuleDefinition] = {d.id: d for d in RULE_DEFINITIONS}
