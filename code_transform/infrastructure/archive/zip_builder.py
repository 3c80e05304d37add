"""
Archive Builder

プロジェクトのソースツリーと依存関係キャッシュを 1 つの決定的な ZIP にまとめる。
"""

from __future__ import annotations

import json
import os
import zipfile
from collections.abc import Collection, Iterator
from pathlib import Path

from loguru import logger

from code_transform.constants import (
    ARCHIVE_DEPENDENCIES_ROOT,
    ARCHIVE_MANIFEST_VERSION,
    ARCHIVE_SOURCES_ROOT,
    EXCLUDED_SOURCE_DIRECTORIES,
)
from code_transform.domains.transformation.models import FolderInfo
from code_transform.shared.exceptions import ArchiveBuildError

# ZIP エントリのタイムスタンプを固定して出力を再現可能にする
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_FILE_MODE = 0o644 << 16
_CHUNK_SIZE = 1024 * 1024

DEFAULT_EXCLUDED_DEPENDENCY_EXTENSIONS: tuple[str, ...] = (".sha1",)


def _iter_files(
    root: Path,
    skip_dirs: Collection[str] = (),
    skip_paths: Collection[Path] = (),
) -> Iterator[Path]:
    """root 以下のファイルをソート順に列挙"""
    skipped = {p.resolve() for p in skip_paths}
    for current, dirnames, filenames in os.walk(root):
        current_path = Path(current)
        dirnames[:] = sorted(
            d
            for d in dirnames
            if d not in skip_dirs and (current_path / d).resolve() not in skipped
        )
        for name in sorted(filenames):
            path = current_path / name
            if path.resolve() in skipped:
                continue
            yield path


def is_excluded_dependency_file(path: Path, excluded_extensions: Collection[str]) -> bool:
    """ハッシュのサイドカーファイルか判定（.sha1 など）"""
    return path.suffix.lower() in {ext.lower() for ext in excluded_extensions}


def _write_entry(archive: zipfile.ZipFile, source: Path, arcname: str) -> None:
    info = zipfile.ZipInfo(arcname, date_time=_FIXED_DATE_TIME)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = _FILE_MODE
    with source.open("rb") as src, archive.open(info, "w") as dst:
        for chunk in iter(lambda: src.read(_CHUNK_SIZE), b""):
            dst.write(chunk)


def _write_manifest(archive: zipfile.ZipFile) -> None:
    manifest = {
        "sourcesRoot": ARCHIVE_SOURCES_ROOT,
        "dependenciesRoot": ARCHIVE_DEPENDENCIES_ROOT,
        "version": ARCHIVE_MANIFEST_VERSION,
    }
    info = zipfile.ZipInfo("manifest.json", date_time=_FIXED_DATE_TIME)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = _FILE_MODE
    archive.writestr(info, json.dumps(manifest, sort_keys=True, indent=2))


def zip_code(
    project_path: Path,
    dependencies: FolderInfo | None,
    output_name: str,
    output_dir: Path,
    excluded_extensions: Collection[str] = DEFAULT_EXCLUDED_DEPENDENCY_EXTENSIONS,
) -> Path:
    """
    プロジェクトと依存関係キャッシュを ZIP 化

    - ソースは sources/ 配下（ビルドツール由来のディレクトリは除外）
    - 依存関係は dependencies/ 配下（グループ/アーティファクト/バージョン構造を維持）
    - ハッシュのサイドカー拡張子を持つ依存ファイルは除外

    書き込みは一時ファイル経由で行い、完成した ZIP のみを出力パスに置く。

    Args:
        project_path: プロジェクトのルート
        dependencies: 依存関係キャッシュ（None の場合はソースのみ）
        output_name: 出力ファイル名
        output_dir: 出力ディレクトリ
        excluded_extensions: 依存関係から除外する拡張子

    Returns:
        作成した ZIP のパス

    Raises:
        ArchiveBuildError: ファイルシステムエラー
    """
    output_path = Path(output_dir) / output_name
    partial_path = output_path.with_name(f"{output_path.name}.partial")
    skip_paths = [output_path, partial_path]
    if dependencies is not None:
        skip_paths.append(dependencies.path)

    source_count = 0
    dependency_count = 0
    excluded_count = 0
    try:
        if not Path(project_path).is_dir():
            raise FileNotFoundError(f"project directory not found: {project_path}")
        if dependencies is not None and not dependencies.path.is_dir():
            raise FileNotFoundError(f"dependency folder not found: {dependencies.path}")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(partial_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            _write_manifest(archive)

            for path in _iter_files(project_path, EXCLUDED_SOURCE_DIRECTORIES, skip_paths):
                relative = path.relative_to(project_path).as_posix()
                _write_entry(archive, path, f"{ARCHIVE_SOURCES_ROOT}{relative}")
                source_count += 1

            if dependencies is not None:
                for path in _iter_files(dependencies.path, skip_paths=[output_path, partial_path]):
                    if is_excluded_dependency_file(path, excluded_extensions):
                        excluded_count += 1
                        continue
                    relative = path.relative_to(dependencies.path).as_posix()
                    _write_entry(archive, path, f"{ARCHIVE_DEPENDENCIES_ROOT}{relative}")
                    dependency_count += 1

        os.replace(partial_path, output_path)
    except (OSError, zipfile.BadZipFile, ValueError) as e:
        partial_path.unlink(missing_ok=True)
        raise ArchiveBuildError(f"Failed to build archive {output_name}: {e}") from e

    logger.info(
        f"Archive built: {output_path.name} "
        f"(sources={source_count}, dependencies={dependency_count}, excluded={excluded_count})"
    )
    return output_path
