"""
PyTest設定ファイル

テストに使用する共通フィクスチャを定義します。
"""

from pathlib import Path

import pytest

from code_transform.domains.transformation.models import FolderInfo
from code_transform.shared.config.settings import Settings


def _write(path: Path, content: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def java_project(tmp_path: Path) -> Path:
    """pom.xml と Java ソースを持つ最小の Maven プロジェクト"""
    root = tmp_path / "sample-app"
    _write(root / "pom.xml", "<project><modelVersion>4.0.0</modelVersion></project>")
    _write(root / "src/main/java/com/example/App.java", "class App {}")
    _write(root / "src/main/resources/application.properties", "name=sample")
    _write(root / "target/classes/App.class", "compiled")
    _write(root / ".git/HEAD", "ref: refs/heads/main")
    return root


@pytest.fixture
def m2_dependencies(tmp_path: Path) -> FolderInfo:
    """~/.m2/repository 形式の依存関係キャッシュ（5 アーティファクト × 7 ファイル）"""
    root = tmp_path / "transformation-dependencies-test"
    for index in range(5):
        artifact = f"lib{index}"
        version_dir = root / "org/example" / artifact / "1.0"
        base = f"{artifact}-1.0"
        for name in (
            f"{base}.jar",
            f"{base}.jar.sha1",
            f"{base}.pom",
            f"{base}.pom.sha1",
            "_remote.repositories",
            f"{base}.jar.lastUpdated",
            f"{base}-sources.jar.sha1",
        ):
            _write(version_dir / name, name)
    return FolderInfo(path=root, name=root.name)


@pytest.fixture
def fast_settings(tmp_path: Path) -> Settings:
    """待機時間を最小化したテスト用設定"""
    return Settings(
        api_base_url="https://transform.test/v1",
        work_dir=str(tmp_path / "work"),
        poll_interval_seconds=0.01,
        throttle_delay_seconds=0,
        min_request_interval=0,
        status_max_retries=1,
    )
