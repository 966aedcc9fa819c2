"""Tests for call resolution against the type model."""

import ast

import pytest

from vigil.engine.calls import CallTable, MatchKind, canonical_type
from vigil.scanner.loader import load_source


def _calls(source: str, attr: str):
    """Package model plus every call whose callee ends in ``attr``."""
    package = load_source(source)
    tree = package.units[0].tree
    calls = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        func = node.func
        name = func.attr if isinstance(func, ast.Attribute) else getattr(func, "id", None)
        if name == attr:
            calls.append(node)
    calls.sort(key=lambda n: (n.lineno, n.col_offset))
    return package, calls


class TestCanonicalType:
    """Receiver spelling normalization."""

    @pytest.mark.parametrize(
        "spelling",
        [
            "zipfile.ZipFile",
            "*zipfile.ZipFile",
            "Optional[zipfile.ZipFile]",
            "typing.Optional[zipfile.ZipFile]",
            "zipfile.ZipFile | None",
            "None | zipfile.ZipFile",
            "Union[zipfile.ZipFile, None]",
            "'zipfile.ZipFile'",
        ],
    )
    def test_spellings_share_a_canonical_form(self, spelling):
        canonical, _ = canonical_type(spelling)
        assert canonical == "zipfile.ZipFile"

    def test_nullable_flag(self):
        assert canonical_type("zipfile.ZipFile") == ("zipfile.ZipFile", False)
        assert canonical_type("*zipfile.ZipFile") == ("zipfile.ZipFile", True)
        assert canonical_type("Optional[zipfile.ZipFile]") == ("zipfile.ZipFile", True)

    def test_real_unions_are_left_alone(self):
        canonical, nullable = canonical_type("int | str")
        assert canonical == "int | str"
        assert nullable is False


class TestCallTableConstruction:
    """add/add_all semantics and freezing."""

    def test_add_is_idempotent_and_order_independent(self):
        a = CallTable().add("hashlib", "md5").add("hashlib", "sha1").add("hashlib", "md5")
        b = CallTable().add_all("hashlib", "sha1", "md5")
        assert len(a) == len(b) == 2
        assert a.contains("hashlib", "md5") and b.contains("hashlib", "md5")

    def test_pointer_and_value_selectors_are_equivalent(self):
        table = CallTable().add("*zipfile.ZipFile", "open")
        assert table.contains("zipfile.ZipFile", "open")
        assert table.contains("Optional[zipfile.ZipFile]", "open")

    def test_add_all_without_names_matches_any_name(self):
        table = CallTable().add_all("numpy.random")
        assert table.contains("numpy.random", "rand")
        assert table.contains("numpy.random", "anything")

    def test_frozen_after_first_query(self):
        table = CallTable().add("hashlib", "md5")
        table.contains("hashlib", "md5")
        assert table.frozen
        with pytest.raises(RuntimeError):
            table.add("hashlib", "sha1")


class TestModuleResolution:
    """Qualifiers rooted at imports."""

    def test_module_qualified_call(self):
        package, calls = _calls("import hashlib\nhashlib.md5(b'x')\n", "md5")
        site = CallTable().add("hashlib", "md5").match(calls[0], package.types, strict=True)
        assert site is not None
        assert site.via == MatchKind.MODULE
        assert site.qualified_name == "hashlib.md5"

    def test_import_alias(self):
        package, calls = _calls("import hashlib as h\nh.md5(b'x')\n", "md5")
        site = CallTable().add("hashlib", "md5").match(calls[0], package.types, strict=True)
        assert site is not None and site.selector == "hashlib"

    def test_from_import_alias(self):
        package, calls = _calls("from hashlib import md5 as weak\nweak(b'x')\n", "weak")
        site = CallTable().add("hashlib", "md5").match(calls[0], package.types, strict=True)
        assert site is not None
        assert (site.selector, site.name) == ("hashlib", "md5")

    def test_dotted_module_path(self):
        source = "from cryptography.hazmat.primitives import hashes\nhashes.MD5()\n"
        package, calls = _calls(source, "MD5")
        table = CallTable().add("cryptography.hazmat.primitives.hashes", "MD5")
        assert table.match(calls[0], package.types, strict=True) is not None

    def test_other_function_of_same_module_does_not_match(self):
        package, calls = _calls("import hashlib\nhashlib.sha256(b'x')\n", "sha256")
        table = CallTable().add("hashlib", "md5")
        assert table.match(calls[0], package.types) is None

    def test_local_function_with_same_name_does_not_match(self):
        source = "def md5(data):\n    return data\n\nmd5(b'x')\n"
        package, calls = _calls(source, "md5")
        assert CallTable().add("hashlib", "md5").match(calls[0], package.types) is None


class TestTypeResolution:
    """Receivers whose type the model knows."""

    SOURCE = (
        "import tarfile\n"
        "import zipfile\n"
        "\n"
        "def extract(path):\n"
        "    archive = tarfile.TarFile(path)\n"
        "    archive.open('member')\n"
    )

    def _table(self) -> CallTable:
        return CallTable().add("zipfile.ZipFile", "open").add("tarfile.TarFile", "open")

    def test_typed_receiver_matches_only_its_type(self):
        package, calls = _calls(self.SOURCE, "open")
        site = self._table().match(calls[0], package.types, strict=True)
        assert site is not None
        assert site.selector == "tarfile.TarFile"
        assert site.via == MatchKind.TYPE

    def test_known_type_never_falls_back_to_name(self):
        package, calls = _calls(self.SOURCE, "open")
        table = CallTable().add("zipfile.ZipFile", "open")
        assert table.match(calls[0], package.types, strict=False) is None

    def test_annotated_optional_parameter(self):
        source = (
            "from typing import Optional\n"
            "import zipfile\n"
            "\n"
            "def read(z: Optional[zipfile.ZipFile]):\n"
            "    return z.open('member')\n"
        )
        package, calls = _calls(source, "open")
        site = self._table().match(calls[0], package.types, strict=True)
        assert site is not None
        assert site.selector == "zipfile.ZipFile"
        assert site.nullable is True

    def test_factory_return_type(self):
        source = "import sqlite3\nconn = sqlite3.connect(':memory:')\ncur = conn.cursor()\ncur.execute('x')\n"
        package, calls = _calls(source, "execute")
        table = CallTable().add("sqlite3.Cursor", "execute")
        assert table.match(calls[0], package.types, strict=True) is not None


class TestUnresolvedQualifier:
    """Strict vs non-strict when nothing is known about the receiver."""

    SOURCE = "def extract(thing):\n    thing.open('member')\n"

    def test_strict_requires_a_confirmed_type(self):
        package, calls = _calls(self.SOURCE, "open")
        table = CallTable().add("zipfile.ZipFile", "open")
        assert table.match(calls[0], package.types, strict=True) is None

    def test_non_strict_matches_by_name(self):
        package, calls = _calls(self.SOURCE, "open")
        table = CallTable().add("zipfile.ZipFile", "open")
        site = table.match(calls[0], package.types, strict=False)
        assert site is not None
        assert site.via == MatchKind.UNRESOLVED

    def test_non_strict_still_needs_the_name(self):
        package, calls = _calls(self.SOURCE, "open")
        table = CallTable().add("zipfile.ZipFile", "close")
        assert table.match(calls[0], package.types, strict=False) is None

    def test_non_strict_prefers_spelled_selector(self):
        package, calls = _calls("md5.new(b'x')\n", "new")
        table = CallTable().add("Crypto.Cipher.DES", "new").add("Crypto.Hash.md5", "new")
        site = table.match(calls[0], package.types)
        assert site is not None and site.selector == "Crypto.Hash.md5"

    def test_bare_unimported_name_never_matches(self):
        package, calls = _calls("md5(b'x')\n", "md5")
        assert CallTable().add("hashlib", "md5").match(calls[0], package.types) is None

    def test_non_call_nodes_are_ignored(self):
        package = load_source("x = 1\n")
        assert CallTable().add("hashlib", "md5").match(package.units[0].tree, package.types) is None
