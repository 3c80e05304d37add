"""
Project Validation

変換候補プロジェクトの検出と実行前バリデーション。
ここで発生するエラーはオーケストレーター開始前に送出され、リモート呼び出しは行われない。
"""

from __future__ import annotations

import os
import platform
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

from loguru import logger

from code_transform.constants import EXCLUDED_SOURCE_DIRECTORIES
from code_transform.domains.transformation.models import CandidateProject
from code_transform.shared.exceptions import (
    JavaHomeNotSetError,
    NoJavaProjectsFoundError,
    NoMavenJavaProjectsFoundError,
    NoOpenProjectsError,
)

BUILD_FILE_NAME = "pom.xml"


def _contains_file(root: Path, predicate) -> bool:
    """ビルド成果物ディレクトリを除いて predicate に一致するファイルがあるか"""
    for current, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in EXCLUDED_SOURCE_DIRECTORIES]
        if any(predicate(name) for name in filenames):
            return True
    return False


def get_open_projects(folders: Iterable[Path | str]) -> list[CandidateProject]:
    """
    開かれているフォルダを変換候補に変換

    Raises:
        NoOpenProjectsError: 対象フォルダが 1 つもない
    """
    projects = [
        CandidateProject(name=Path(folder).resolve().name, path=Path(folder).resolve())
        for folder in folders
        if Path(folder).is_dir()
    ]
    if not projects:
        raise NoOpenProjectsError("No open project folders were supplied")
    return projects


def validate_open_projects(projects: Sequence[CandidateProject]) -> list[CandidateProject]:
    """
    Java ソースと pom.xml を持つプロジェクトのみを返す

    Raises:
        NoJavaProjectsFoundError: Java ソースを含むプロジェクトがない
        NoMavenJavaProjectsFoundError: pom.xml を持つ Java プロジェクトがない
    """
    java_projects = [
        project for project in projects if _contains_file(project.path, lambda n: n.endswith(".java"))
    ]
    if not java_projects:
        raise NoJavaProjectsFoundError(
            f"No Java sources found in {len(projects)} candidate project(s)"
        )

    maven_projects = [
        project for project in java_projects if _contains_file(project.path, lambda n: n == BUILD_FILE_NAME)
    ]
    if not maven_projects:
        raise NoMavenJavaProjectsFoundError(
            f"No {BUILD_FILE_NAME} found in {len(java_projects)} Java project(s)"
        )

    logger.debug(f"Valid candidate projects: {[p.name for p in maven_projects]}")
    return maven_projects


def validate_java_home(environ: Mapping[str, str] | None = None) -> Path:
    """
    JAVA_HOME が有効な JDK ディレクトリを指しているか確認

    Raises:
        JavaHomeNotSetError: 未設定またはディレクトリが存在しない
    """
    env = os.environ if environ is None else environ
    java_home = env.get("JAVA_HOME", "").strip()
    if not java_home or not Path(java_home).is_dir():
        raise JavaHomeNotSetError(f"JAVA_HOME is not a directory: {java_home!r}")
    return Path(java_home)


def resolve_maven_executable(project_path: Path, system: str | None = None) -> str:
    """Maven Wrapper があればそれを、なければ mvn を使用"""
    is_windows = (system or platform.system()) == "Windows"
    wrapper = "mvnw.cmd" if is_windows else "mvnw"
    if (Path(project_path) / wrapper).exists():
        maven_name = ".\\mvnw.cmd" if is_windows else "./mvnw"
    else:
        maven_name = "mvn"
    logger.info(f"CodeTransformation: using Maven {maven_name}")
    return maven_name
