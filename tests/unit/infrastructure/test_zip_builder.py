"""zip_code のテスト"""

import json
import zipfile
from pathlib import Path

import pytest

from code_transform.domains.transformation.models import FolderInfo
from code_transform.infrastructure.archive import is_excluded_dependency_file, zip_code
from code_transform.shared.exceptions import ArchiveBuildError


def _names(archive_path: Path) -> list[str]:
    with zipfile.ZipFile(archive_path) as archive:
        return archive.namelist()


class TestZipCode:
    def test_sources_and_dependencies(self, java_project, m2_dependencies, tmp_path):
        output = zip_code(java_project, m2_dependencies, "payload.zip", tmp_path / "out")
        names = _names(output)

        assert output == tmp_path / "out" / "payload.zip"
        assert names[0] == "manifest.json"
        assert "sources/pom.xml" in names
        assert "sources/src/main/java/com/example/App.java" in names
        assert not any(name.startswith("sources/target/") for name in names)
        assert not any(name.startswith("sources/.git/") for name in names)

    def test_dependency_count_excludes_only_sidecars(self, java_project, m2_dependencies, tmp_path):
        """5 バージョンディレクトリ × 4 ファイル（7 ファイル中 .sha1 の 3 つを除外）"""
        output = zip_code(java_project, m2_dependencies, "payload.zip", tmp_path / "out")
        dependency_names = [n for n in _names(output) if n.startswith("dependencies/")]

        assert len(dependency_names) == 5 * 4
        assert not any(name.endswith(".sha1") for name in dependency_names)
        assert "dependencies/org/example/lib0/1.0/_remote.repositories" in dependency_names
        assert "dependencies/org/example/lib3/1.0/lib3-1.0.jar.lastUpdated" in dependency_names

    def test_manifest(self, java_project, tmp_path):
        output = zip_code(java_project, None, "payload.zip", tmp_path / "out")
        with zipfile.ZipFile(output) as archive:
            manifest = json.loads(archive.read("manifest.json"))
        assert manifest == {
            "dependenciesRoot": "dependencies/",
            "sourcesRoot": "sources/",
            "version": "1.0",
        }
        assert not any(name.startswith("dependencies/") for name in _names(output))

    def test_output_is_reproducible(self, java_project, m2_dependencies, tmp_path):
        first = zip_code(java_project, m2_dependencies, "payload.zip", tmp_path / "a")
        second = zip_code(java_project, m2_dependencies, "payload.zip", tmp_path / "b")
        assert first.read_bytes() == second.read_bytes()

    def test_custom_excluded_extensions(self, java_project, m2_dependencies, tmp_path):
        output = zip_code(
            java_project, m2_dependencies, "payload.zip", tmp_path / "out", excluded_extensions=(".pom",)
        )
        dependency_names = [n for n in _names(output) if n.startswith("dependencies/")]
        assert len(dependency_names) == 5 * 6
        assert not any(name.endswith(".pom") for name in dependency_names)

    def test_output_inside_project_is_not_archived(self, java_project):
        output = zip_code(java_project, None, "payload.zip", java_project)
        assert "sources/payload.zip" not in _names(output)
        assert "sources/payload.zip.partial" not in _names(output)

    def test_missing_project_raises(self, tmp_path):
        out_dir = tmp_path / "out"
        with pytest.raises(ArchiveBuildError):
            zip_code(tmp_path / "missing", None, "payload.zip", out_dir)
        assert not (out_dir / "payload.zip").exists()
        assert not (out_dir / "payload.zip.partial").exists()

    def test_missing_dependency_folder_raises(self, java_project, tmp_path):
        missing = FolderInfo(path=tmp_path / "no-deps", name="no-deps")
        with pytest.raises(ArchiveBuildError):
            zip_code(java_project, missing, "payload.zip", tmp_path / "out")


@pytest.mark.parametrize(
    ("name", "excluded"),
    [
        ("lib-1.0.jar.sha1", True),
        ("LIB-1.0.POM.SHA1", True),
        ("_remote.repositories", False),
        ("resolver-status.properties", False),
        ("lib-1.0.jar", False),
    ],
)
def test_is_excluded_dependency_file(name, excluded):
    assert is_excluded_dependency_file(Path(name), (".sha1",)) is excluded
