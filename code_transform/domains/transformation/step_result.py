"""
Step results

オーケストレーターの各ステップの結果を成功/失敗の型付きユニオンで表す。
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class StepSuccess(Generic[T]):
    value: T


@dataclass(frozen=True)
class StepFailure:
    error: Exception


StepResult = Union[StepSuccess[T], StepFailure]


async def run_step(step: Awaitable[T]) -> StepResult[T]:
    """ステップを実行し、例外を StepFailure に変換"""
    try:
        return StepSuccess(await step)
    except Exception as e:
        return StepFailure(e)
