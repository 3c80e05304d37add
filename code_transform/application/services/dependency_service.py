"""
Dependency Service

依存関係キャッシュの準備（外部コラボレーター境界）と、実行が所有する作業フォルダの解放。
ビルドツールの実行そのものは扱わず、準備済みのキャッシュを実行専用フォルダへ複製する。
"""

from __future__ import annotations

import shutil
import time
from pathlib import Path
from typing import Protocol

from loguru import logger

from code_transform.constants import DEPENDENCY_FOLDER_PREFIX
from code_transform.domains.transformation.models import FolderInfo
from code_transform.shared.exceptions import DependencyPreparationError


class DependencyPreparer(Protocol):
    def prepare(self, project_path: Path) -> FolderInfo: ...


def get_dependencies_folder_info(work_dir: Path) -> FolderInfo:
    """作業ディレクトリ内に一意な依存関係フォルダ名を割り当てる"""
    name = f"{DEPENDENCY_FOLDER_PREFIX}{time.time_ns()}"
    return FolderInfo(path=Path(work_dir) / name, name=name)


class LocalCacheDependencyPreparer:
    """既存のローカル依存関係キャッシュ（~/.m2/repository 形式）を実行専用フォルダへ複製

    Args:
        cache_dir: 準備済みの依存関係キャッシュ
        work_dir: 実行専用フォルダを作成するディレクトリ
    """

    def __init__(self, cache_dir: Path, work_dir: Path) -> None:
        self._cache_dir = Path(cache_dir)
        self._work_dir = Path(work_dir)

    def prepare(self, project_path: Path) -> FolderInfo:
        if not self._cache_dir.is_dir():
            raise DependencyPreparationError(
                f"Dependency cache not found: {self._cache_dir}"
            )
        folder = get_dependencies_folder_info(self._work_dir)
        try:
            shutil.copytree(self._cache_dir, folder.path)
        except OSError as e:
            release_dependency_folder(folder)
            raise DependencyPreparationError(
                f"Failed to copy dependency cache for {Path(project_path).name}: {e}"
            ) from e
        logger.info(f"Dependencies prepared in {folder.name}")
        return folder


def release_dependency_folder(folder: FolderInfo | None) -> None:
    """実行専用の依存関係フォルダを削除（存在しなければ何もしない）"""
    if folder is None:
        return
    shutil.rmtree(folder.path, ignore_errors=True)
    logger.debug(f"Dependency folder released: {folder.name}")
