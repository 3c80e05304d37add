"""
Code Transform CLI

コード変換ジョブ操作の統一CLIインターフェース
"""

from pathlib import Path

import typer
from rich.console import Console

from code_transform.domains.transformation.models import JDKVersion
from code_transform.shared.utils.logger_config import setup_logger

console = Console()

app = typer.Typer(
    name="code-transform",
    help="🔧 Java コード変換ジョブ管理ツール",
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="詳細ログ出力"),
) -> None:
    """🔧 Java コード変換ジョブ管理ツール"""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logger(verbose=verbose)


# 変換候補プロジェクト一覧
@app.command(name="projects")
def projects_command(
    paths: list[Path] = typer.Argument(..., help="候補フォルダ（複数指定可）"),
):
    """
    変換可能な Maven Java プロジェクトを一覧表示

    Examples:
        code-transform projects ./service-a ./service-b
    """
    from code_transform.cli.run import run_projects

    run_projects(paths)


# 変換実行
@app.command(name="run")
def run_command(
    project: Path = typer.Argument(..., help="変換するプロジェクトのパス"),
    source: JDKVersion = typer.Option(JDKVersion.JDK8, "--from", help="変換元 JDK バージョン"),
    target: JDKVersion = typer.Option(JDKVersion.JDK17, "--to", help="変換先 JDK バージョン"),
    dependency_cache: Path = typer.Option(
        None, "--dependency-cache", help="準備済みの依存関係キャッシュ（~/.m2/repository 形式）"
    ),
):
    """
    変換ジョブを実行し、完了まで待機

    実行中に Ctrl+C でジョブの停止を要求します。

    Examples:
        code-transform run ./service-a --from 8 --to 17
        code-transform -v run ./service-a --dependency-cache ~/.m2/repository
    """
    from code_transform.cli.run import run_transformation

    run_transformation(project, source, target, dependency_cache)


# ジョブ状態確認
@app.command(name="status")
def status_command(
    job_id: str = typer.Argument(..., help="変換ジョブ ID"),
):
    """
    リモートジョブの現在の状態を表示

    Examples:
        code-transform status 0f1e2d3c
    """
    from code_transform.cli.run import run_status

    run_status(job_id)


# ジョブ停止
@app.command(name="stop")
def stop_command(
    job_id: str = typer.Argument(..., help="変換ジョブ ID"),
):
    """
    リモートジョブの停止を要求

    Examples:
        code-transform stop 0f1e2d3c
    """
    from code_transform.cli.run import run_stop

    run_stop(job_id)


if __name__ == "__main__":
    app()
