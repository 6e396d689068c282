"""
Tests for detection — manifests, languages, package managers, root checks.
"""

from pathlib import Path

import pytest

from codeaudit.core.errors import RootUnreadable
from codeaudit.core.services.detection import ProjectProfiler, check_root, detect_profile
from codeaudit.core.services.scan_common import has_nosec, language_of, walk_files


class TestDetectProfile:
    def test_python_project(self, tmp_path: Path):
        (tmp_path / "pyproject.toml").write_text("[project]\nname = 'x'\n")
        profile = detect_profile(tmp_path)
        assert profile.languages == {"python"}
        assert profile.manifests == {"pyproject.toml"}
        assert profile.package_managers == {"pip"}

    def test_typescript_node_project(self, tmp_path: Path):
        (tmp_path / "package.json").write_text("{}")
        (tmp_path / "tsconfig.json").write_text("{}")
        profile = detect_profile(tmp_path)
        assert {"javascript", "typescript"} <= profile.languages
        assert "npm" in profile.package_managers

    def test_polyglot_monorepo(self, tmp_path: Path):
        (tmp_path / "services" / "api").mkdir(parents=True)
        (tmp_path / "services" / "api" / "go.mod").write_text("module api\n")
        (tmp_path / "services" / "engine").mkdir()
        (tmp_path / "services" / "engine" / "Cargo.toml").write_text("[package]\n")
        (tmp_path / "App.csproj").write_text("<Project/>")
        profile = detect_profile(tmp_path)
        assert {"go", "rust", "csharp"} <= profile.languages
        assert "services/api/go.mod" in profile.manifests
        assert {"go", "cargo", "nuget"} <= profile.package_managers

    def test_languages_from_sources_without_manifest(self, tmp_path: Path):
        (tmp_path / "main.rb").write_text("puts 1\n")
        profile = detect_profile(tmp_path)
        assert profile.languages == {"ruby"}
        assert profile.manifests == frozenset()

    def test_skip_dirs_ignored(self, tmp_path: Path):
        (tmp_path / "node_modules" / "dep").mkdir(parents=True)
        (tmp_path / "node_modules" / "dep" / "package.json").write_text("{}")
        (tmp_path / ".venv").mkdir()
        (tmp_path / ".venv" / "x.py").write_text("")
        profile = detect_profile(tmp_path)
        assert profile.is_empty

    def test_empty_root_is_valid(self, tmp_path: Path):
        profile = detect_profile(tmp_path)
        assert profile.is_empty
        assert profile.root == str(tmp_path.resolve())

    def test_depth_bound(self, tmp_path: Path):
        deep = tmp_path / "a" / "b" / "c"
        deep.mkdir(parents=True)
        (deep / "go.mod").write_text("module x\n")
        assert detect_profile(tmp_path).manifests == {"a/b/c/go.mod"}
        assert ProjectProfiler(max_depth=1).detect(tmp_path).manifests == frozenset()

    def test_never_writes(self, tmp_path: Path):
        (tmp_path / "setup.py").write_text("")
        before = sorted(p.name for p in tmp_path.rglob("*"))
        detect_profile(tmp_path)
        assert sorted(p.name for p in tmp_path.rglob("*")) == before


class TestCheckRoot:
    def test_missing_root(self, tmp_path: Path):
        with pytest.raises(RootUnreadable, match="does not exist"):
            check_root(tmp_path / "nope")

    def test_file_root(self, tmp_path: Path):
        f = tmp_path / "f.txt"
        f.write_text("x")
        with pytest.raises(RootUnreadable, match="not a directory"):
            detect_profile(f)


class TestScanCommon:
    def test_language_of(self):
        assert language_of(Path("a.py")) == "python"
        assert language_of(Path("a.TSX")) == "typescript"
        assert language_of(Path("README.md")) is None

    def test_has_nosec(self):
        assert has_nosec("eval(x)  # nosec")
        assert has_nosec("exec(x) // NOSEC B102")
        assert not has_nosec("nosecurity = 1")

    def test_walk_files_skips_binaries_and_caps(self, tmp_path: Path):
        for i in range(5):
            (tmp_path / f"f{i}.py").write_text("")
        (tmp_path / "img.png").write_bytes(b"\x89PNG")
        files = list(walk_files(tmp_path))
        assert len(files) == 5
        assert len(list(walk_files(tmp_path, max_files=2))) == 2
