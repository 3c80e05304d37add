"""依存関係フォルダの準備・解放のテスト"""

import pytest

from code_transform.application.services.dependency_service import (
    LocalCacheDependencyPreparer,
    get_dependencies_folder_info,
    release_dependency_folder,
)
from code_transform.constants import DEPENDENCY_FOLDER_PREFIX
from code_transform.shared.exceptions import DependencyPreparationError


def test_folder_info_is_unique(tmp_path):
    first = get_dependencies_folder_info(tmp_path)
    second = get_dependencies_folder_info(tmp_path)
    assert first.name.startswith(DEPENDENCY_FOLDER_PREFIX)
    assert first.path.parent == tmp_path
    assert first.name != second.name


class TestLocalCacheDependencyPreparer:
    def test_copies_cache(self, java_project, m2_dependencies, tmp_path):
        preparer = LocalCacheDependencyPreparer(m2_dependencies.path, tmp_path / "work")
        folder = preparer.prepare(java_project)

        assert folder.path.is_dir()
        assert (folder.path / "org/example/lib0/1.0/_remote.repositories").exists()
        assert folder.path != m2_dependencies.path

    def test_missing_cache(self, java_project, tmp_path):
        preparer = LocalCacheDependencyPreparer(tmp_path / "no-cache", tmp_path / "work")
        with pytest.raises(DependencyPreparationError):
            preparer.prepare(java_project)


def test_release_dependency_folder(m2_dependencies):
    release_dependency_folder(m2_dependencies)
    assert not m2_dependencies.path.exists()
    # 存在しない / None でもエラーにならない
    release_dependency_folder(m2_dependencies)
    release_dependency_folder(None)
