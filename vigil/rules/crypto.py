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

"""Weak cryptography: G401 (hashes and ciphers), G403 (short RSA/DSA keys)
and G404 (non-cryptographic random number generators)."""

from __future__ import annotations

import ast
from typing import Optional

from vigil.engine.calls import CallTable
from vigil.engine.rule import Rule, RuleConfigError, RunContext
from vigil.models.issue import Finding, Score
from vigil.rules.helpers import argument, int_value, is_false, keyword, settings_dict, string_value

# ── G401 ──

WEAK_HASH_NAMES = {"md4", "md5", "sha", "sha1", "md5-sha1"}

WEAK_PRIMITIVES = {
    "hashlib": ("md5", "sha1"),
    "Crypto.Hash.MD2": ("new",),
    "Crypto.Hash.MD4": ("new",),
    "Crypto.Hash.MD5": ("new",),
    "Crypto.Hash.SHA": ("new",),
    "Crypto.Hash.SHA1": ("new",),
    "Cryptodome.Hash.MD2": ("new",),
    "Cryptodome.Hash.MD4": ("new",),
    "Cryptodome.Hash.MD5": ("new",),
    "Cryptodome.Hash.SHA1": ("new",),
    "Crypto.Cipher.DES": ("new",),
    "Crypto.Cipher.DES3": ("new",),
    "Crypto.Cipher.ARC2": ("new",),
    "Crypto.Cipher.ARC4": ("new",),
    "Crypto.Cipher.Blowfish": ("new",),
    "Cryptodome.Cipher.DES": ("new",),
    "Cryptodome.Cipher.DES3": ("new",),
    "Cryptodome.Cipher.ARC2": ("new",),
    "Cryptodome.Cipher.ARC4": ("new",),
    "Cryptodome.Cipher.Blowfish": ("new",),
    "cryptography.hazmat.primitives.hashes": ("MD5", "SHA1"),
    "cryptography.hazmat.primitives.ciphers.algorithms": ("ARC4", "TripleDES", "Blowfish", "IDEA", "CAST5", "SEED"),
}


class WeakCryptoPrimitive(Rule[None]):
    title = "Use of weak cryptographic primitive"
    severity = Score.MEDIUM
    confidence = Score.HIGH
    kinds = (ast.Call,)

    def __init__(self, rule_id: str, settings=None) -> None:
        super().__init__(rule_id, settings)
        self.calls = CallTable()
        for selector, names in WEAK_PRIMITIVES.items():
            self.calls.add_all(selector, *names)
        self.hash_new = CallTable().add("hashlib", "new")

    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        if self.hash_new.match(node, ctx.types, strict=True) is not None:
            name = string_value(argument(node, 0, "name"))
            if name is None or name.lower() not in WEAK_HASH_NAMES:
                return None
            if is_false(keyword(node, "usedforsecurity")):
                return None
            return self.finding(ctx, node, f"{self.title}: hashlib.new({name!r})")

        site = self.calls.match(node, ctx.types, strict=True)
        if site is None:
            return None
        # Python 3.9+: hashlib.md5(usedforsecurity=False) opts out.
        if site.selector == "hashlib" and is_false(keyword(node, "usedforsecurity")):
            return None
        return self.finding(ctx, node, f"{self.title}: {site.qualified_name}")


# ── G403 ──

# selector -> {name: (position, keyword)} of the key size argument
KEY_GENERATORS: dict[str, dict[str, tuple[int, str]]] = {
    "cryptography.hazmat.primitives.asymmetric.rsa": {"generate_private_key": (1, "key_size")},
    "cryptography.hazmat.primitives.asymmetric.dsa": {"generate_private_key": (0, "key_size")},
    "Crypto.PublicKey.RSA": {"generate": (0, "bits")},
    "Crypto.PublicKey.DSA": {"generate": (0, "bits")},
    "Cryptodome.PublicKey.RSA": {"generate": (0, "bits")},
    "Cryptodome.PublicKey.DSA": {"generate": (0, "bits")},
    "rsa": {"newkeys": (0, "nbits")},
}


class WeakKeySize(Rule[None]):
    """Settings: ``min_bits`` (default 2048)."""

    title = "RSA keys should be at least 2048 bits"
    severity = Score.MEDIUM
    confidence = Score.HIGH
    kinds = (ast.Call,)

    def __init__(self, rule_id: str, settings=None) -> None:
        super().__init__(rule_id, settings)
        opts = settings_dict(rule_id, settings)
        min_bits = opts.get("min_bits", 2048)
        if isinstance(min_bits, bool) or not isinstance(min_bits, int) or min_bits <= 0:
            raise RuleConfigError(rule_id, f"min_bits must be a positive integer, got {min_bits!r}")
        self.min_bits = min_bits
        if min_bits != 2048:
            self.title = f"RSA keys should be at least {min_bits} bits"
        self.calls = CallTable()
        for selector, names in KEY_GENERATORS.items():
            self.calls.add_all(selector, *names)

    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        site = self.calls.match(node, ctx.types, strict=True)
        if site is None:
            return None
        position, name = KEY_GENERATORS[site.selector][site.name]
        bits = int_value(argument(node, position, name))
        if bits is not None and bits < self.min_bits:
            return self.finding(ctx, node, f"{self.title}, got {bits}")
        return None


# ── G404 ──

RANDOM_FUNCTIONS = (
    "random", "randint", "randrange", "randbytes", "getrandbits", "choice", "choices",
    "sample", "shuffle", "uniform", "triangular", "betavariate", "expovariate",
    "gammavariate", "gauss", "lognormvariate", "normalvariate", "vonmisesvariate",
    "paretovariate", "weibullvariate", "binomialvariate",
)


class WeakRandom(Rule[None]):
    title = "Use of weak random number generator (random module instead of secrets)"
    severity = Score.HIGH
    confidence = Score.MEDIUM
    kinds = (ast.Call,)

    def __init__(self, rule_id: str, settings=None) -> None:
        super().__init__(rule_id, settings)
        self.calls = (
            CallTable()
            .add_all("random", *RANDOM_FUNCTIONS)
            .add_all("random.Random", *RANDOM_FUNCTIONS)
            .add_all("numpy.random")
        )

    def evaluate(self, node: ast.AST, ctx: RunContext) -> Optional[Finding]:
        if self.calls.match(node, ctx.types, strict=True) is not None:
            return self.finding(ctx, node)
        return None
