"""RunContext / RunRegistry / CancellationToken のテスト"""

import asyncio
import time
from pathlib import Path

import pytest

from code_transform.domains.transformation.models import (
    CandidateProject,
    JDKVersion,
    PlanStep,
    StepProgress,
    TransformByQStatus,
)
from code_transform.domains.transformation.run_context import (
    CancellationToken,
    RunRegistry,
)
from code_transform.domains.transformation.step_result import (
    StepFailure,
    StepSuccess,
    run_step,
)
from code_transform.shared.exceptions import (
    RunAlreadyActiveError,
    TransformationCancelledError,
    UploadError,
)

PROJECT = CandidateProject(name="sample-app", path=Path("/workspace/sample-app"))


@pytest.mark.asyncio
class TestCancellationToken:
    async def test_sleep_returns_early_on_cancel(self):
        """待機中のキャンセルは即座に反映される"""
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        start = time.monotonic()
        await token.sleep(5)
        assert time.monotonic() - start < 1
        assert token.is_cancelled

    async def test_sleep_without_cancel(self):
        token = CancellationToken()
        await token.sleep(0.01)
        assert token.is_cancelled is False

    async def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        with pytest.raises(TransformationCancelledError):
            token.raise_if_cancelled()


@pytest.mark.asyncio
class TestRunRegistry:
    async def test_single_active_run(self):
        registry = RunRegistry()
        context = await registry.open_run(PROJECT, JDKVersion.JDK8, JDKVersion.JDK17)
        assert registry.active is context

        with pytest.raises(RunAlreadyActiveError):
            await registry.open_run(PROJECT, JDKVersion.JDK8, JDKVersion.JDK17)

        await registry.close_run(context)
        assert registry.active is None

    async def test_contexts_are_independent(self):
        """max_active_runs を増やすと run_id ごとに独立した状態を持つ"""
        registry = RunRegistry(max_active_runs=2)
        first = await registry.open_run(PROJECT, JDKVersion.JDK8, JDKVersion.JDK17)
        second = await registry.open_run(PROJECT, JDKVersion.JDK11, JDKVersion.JDK17)

        first.job_state.set_to_running()
        assert second.job_state.status == TransformByQStatus.NOT_STARTED
        assert first.session_id != second.session_id
        assert registry.active is second


@pytest.mark.asyncio
class TestRunContext:
    async def test_request_cancel_only_when_running(self):
        registry = RunRegistry()
        context = await registry.open_run(PROJECT, JDKVersion.JDK8, JDKVersion.JDK17)

        assert context.request_cancel() is False
        assert context.cancellation.is_cancelled is False

        context.job_state.set_to_running()
        assert context.request_cancel() is True
        assert context.cancellation.is_cancelled is True
        with pytest.raises(TransformationCancelledError):
            context.raise_if_cancelled()

    async def test_snapshot_is_a_copy(self):
        registry = RunRegistry()
        context = await registry.open_run(PROJECT, JDKVersion.JDK8, JDKVersion.JDK17)
        context.record_polled_status("PLANNED")
        snapshot = context.snapshot()

        context.mark_step(PlanStep.START_JOB, StepProgress.SUCCEEDED)
        assert snapshot.step_progress[PlanStep.START_JOB] == StepProgress.PENDING
        assert snapshot.polled_status == "PLANNED"

    async def test_start_clock_deadline(self):
        registry = RunRegistry()
        context = await registry.open_run(PROJECT, JDKVersion.JDK8, JDKVersion.JDK17)
        context.start_clock(None)
        assert context.deadline is None
        context.start_clock(30)
        assert context.deadline == pytest.approx(context.started_monotonic + 30)
        assert context.elapsed_ms() >= 0


@pytest.mark.asyncio
class TestRunStep:
    async def test_success(self):
        async def _step():
            return "upload-1"

        result = await run_step(_step())
        assert isinstance(result, StepSuccess)
        assert result.value == "upload-1"

    async def test_failure(self):
        async def _step():
            raise UploadError("rejected")

        result = await run_step(_step())
        assert isinstance(result, StepFailure)
        assert isinstance(result.error, UploadError)

    async def test_cancellation_failure(self):
        async def _step():
            raise TransformationCancelledError()

        result = await run_step(_step())
        assert isinstance(result, StepFailure)
        assert isinstance(result.error, TransformationCancelledError)
