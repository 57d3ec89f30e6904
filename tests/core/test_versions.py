import unittest
from pathlib import Path
from unittest.mock import patch

from conjurer.core.errors import ValidationError
from conjurer.core.versions import (
    ProjectInfo,
    format_python_version,
    parse_product_name_and_version,
    strip_version,
)


class TestFormatPythonVersion(unittest.TestCase):
    def test_formats_git_describe_versions(self) -> None:
        cases = {
            "1.2.3": "1.2.3",
            "1.2.3-rc4": "1.2.3rc4",
            "1.2.3-5-gabc123": "1.2.3+5.gabc123",
            "1.2.3-rc4-5-gabc.dirty": "1.2.3rc4+5.gabc.dirty",
            "unspecified": "unspecified",
        }
        for raw, expected in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(format_python_version(raw), expected)

    def test_rejects_other_versions(self) -> None:
        for raw in ("1.2", "v1.2.3", "1.2.3-SNAPSHOT"):
            with self.subTest(raw=raw):
                with self.assertRaises(ValidationError) as ctx:
                    format_python_version(raw)
                self.assertEqual(ctx.exception.code, "version.invalid")


class TestProductNames(unittest.TestCase):
    def test_parses_name_and_version(self) -> None:
        pv = parse_product_name_and_version("foo-baz-1.0.0-rc1-gabcd.conjure.json")
        self.assertEqual((pv.name, pv.version), ("foo-baz", "1.0.0-rc1-gabcd"))
        pv = parse_product_name_and_version("api-2.3.4.json")
        self.assertEqual((pv.name, pv.version), ("api", "2.3.4"))

    def test_unparseable_name(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            parse_product_name_and_version("api.json")
        self.assertEqual(ctx.exception.code, "version.product_name_invalid")
        self.assertIn("api.json", ctx.exception.message)

    def test_strip_version(self) -> None:
        self.assertEqual(strip_version("foo-baz-1.0.0-rc1-gabcd.conjure.json"), "foo-baz")
        self.assertEqual(strip_version("api.conjure.json"), "api")
        self.assertEqual(strip_version("api.json"), "api")


class TestProjectInfo(unittest.TestCase):
    def test_explicit_version_skips_git(self) -> None:
        with patch("conjurer.core.versions.git_describe_version") as describe:
            info = ProjectInfo("demo", "1.0.0")
            self.assertEqual(info.version, "1.0.0")
        describe.assert_not_called()

    def test_version_is_resolved_lazily_once(self) -> None:
        with patch("conjurer.core.versions.git_describe_version", return_value="2.0.0-3-gdeadbee") as describe:
            info = ProjectInfo("demo", root=Path("."))
            describe.assert_not_called()
            self.assertEqual(info.version, "2.0.0-3-gdeadbee")
            self.assertEqual(info.version, "2.0.0-3-gdeadbee")
        describe.assert_called_once()

    def test_falls_back_to_unspecified(self) -> None:
        with patch("conjurer.core.versions.git_describe_version", return_value=None):
            self.assertEqual(ProjectInfo("demo").version, "unspecified")


if __name__ == "__main__":
    unittest.main()
