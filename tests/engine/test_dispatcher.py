# tests/engine/test_dispatcher.py
"""评估调度器测试：并发上限、进度事件、失败即整批失败。

/ Dispatcher tests: concurrency bound, progress events, all-or-nothing failure.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from grouper.engine.dispatcher import PROGRESS_LABEL, EvaluationDispatcher
from grouper.engine.run import FocusGroupRun
from grouper.errors import BUDGET_EXCEEDED, ORACLE_FAILED, BudgetExceededError, OracleError
from grouper.primitives.models import (
    FocusGroup,
    LikertRating,
    Message,
    MessageVariants,
    Positioning,
    PromptedParticipant,
    Reaction,
)

MESSAGE = Message(id="nosmoke", content="smoking is bad",
                  objective="deter smoking", deliverable="poster")
REACTION = Reaction("clear", "preachy", ("meh",), LikertRating.AGREE)


def _run(n_participants=3, wordings=("A", "B")):
    people = [PromptedParticipant(f"p{i}", f"identity {i}", "nano") for i in range(n_participants)]
    return FocusGroupRun(
        FocusGroup(people),
        Positioning((MessageVariants.of(MESSAGE, *wordings),)),
    )


class _TrackingOracle:
    """记录同时在途调用数的预言机。 / Oracle that tracks in-flight calls."""

    def __init__(self):
        self.in_flight = 0
        self.peak = 0
        self.calls = []

    async def evaluate(self, *, contribution, wording, objective, deliverable, llm=None):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        self.calls.append((contribution, wording))
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return REACTION


class TestDispatch:
    @pytest.mark.asyncio
    async def test_every_combination_evaluated_once(self):
        oracle = _TrackingOracle()
        run = _run()
        await EvaluationDispatcher(oracle, max_concurrency=4).dispatch(run)
        assert run.is_complete()
        assert len(oracle.calls) == 6
        assert len(set(oracle.calls)) == 6

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        oracle = _TrackingOracle()
        run = _run(n_participants=5, wordings=("A", "B", "C"))
        await EvaluationDispatcher(oracle, max_concurrency=2).dispatch(run)
        assert oracle.peak <= 2
        assert run.is_complete()

    @pytest.mark.asyncio
    async def test_oracle_receives_message_context(self):
        oracle = AsyncMock()
        oracle.evaluate.return_value = REACTION
        run = _run(n_participants=1, wordings=("Smoking is uncool",))
        await EvaluationDispatcher(oracle, max_concurrency=1).dispatch(run)
        kwargs = oracle.evaluate.call_args.kwargs
        assert kwargs["wording"] == "Smoking is uncool"
        assert kwargs["objective"] == "deter smoking"
        assert kwargs["deliverable"] == "poster"
        assert kwargs["llm"] == "nano"
        assert "identity 0" in kwargs["contribution"]

    @pytest.mark.asyncio
    async def test_progress_events_count_up_to_total(self):
        events = []
        oracle = _TrackingOracle()
        run = _run(n_participants=2, wordings=("A", "B"))
        dispatcher = EvaluationDispatcher(
            oracle, max_concurrency=3, on_progress=events.append, session_id="s1",
        )
        await dispatcher.dispatch(run, iteration=2)
        assert [e.current for e in events] == [1, 2, 3, 4]
        assert all(e.total == 4 for e in events)
        assert all(e.label == PROGRESS_LABEL for e in events)
        assert all(e.type == "progress" and e.iteration == 2 for e in events)
        assert events[-1].progress == 1.0

    @pytest.mark.asyncio
    async def test_async_progress_callback_awaited(self):
        seen = []

        async def on_progress(event):
            seen.append(event.current)

        await EvaluationDispatcher(
            _TrackingOracle(), max_concurrency=2, on_progress=on_progress,
        ).dispatch(_run(n_participants=1, wordings=("A", "B")))
        assert sorted(seen) == [1, 2]

    @pytest.mark.asyncio
    async def test_complete_run_is_not_redispatched(self):
        oracle = _TrackingOracle()
        run = _run(n_participants=1, wordings=("A",))
        dispatcher = EvaluationDispatcher(oracle, max_concurrency=1)
        await dispatcher.dispatch(run)
        await dispatcher.dispatch(run)
        assert len(oracle.calls) == 1

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValueError):
            EvaluationDispatcher(_TrackingOracle(), max_concurrency=0)


class TestFailure:
    @pytest.mark.asyncio
    async def test_failure_aborts_batch_without_recording(self):
        async def evaluate(*, contribution, wording, objective, deliverable, llm=None):
            if wording == "B" and "identity 1" in contribution:
                raise RuntimeError("model down")
            return REACTION

        oracle = AsyncMock()
        oracle.evaluate.side_effect = evaluate
        run = _run()
        with pytest.raises(OracleError) as exc_info:
            await EvaluationDispatcher(oracle, max_concurrency=2).dispatch(run)

        err = exc_info.value
        assert err.participant_id == "p1-nano"
        assert err.wording == "B"
        assert err.code == ORACLE_FAILED
        assert run.reactions == ()
        assert not run.is_complete()

    @pytest.mark.asyncio
    async def test_in_flight_siblings_are_cancelled(self):
        cancelled = []

        async def evaluate(*, contribution, wording, objective, deliverable, llm=None):
            if wording == "A":
                raise RuntimeError("boom")
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(wording)
                raise
            return REACTION

        oracle = AsyncMock()
        oracle.evaluate.side_effect = evaluate
        run = _run(n_participants=1, wordings=("A", "B", "C"))
        with pytest.raises(OracleError):
            await EvaluationDispatcher(oracle, max_concurrency=3).dispatch(run)
        assert sorted(cancelled) == ["B", "C"]

    @pytest.mark.asyncio
    async def test_budget_error_keeps_its_class(self):
        oracle = AsyncMock()
        oracle.evaluate.side_effect = BudgetExceededError("no calls left")
        with pytest.raises(BudgetExceededError) as exc_info:
            await EvaluationDispatcher(oracle, max_concurrency=1).dispatch(
                _run(n_participants=1, wordings=("A",))
            )
        err = exc_info.value
        assert err.code == BUDGET_EXCEEDED
        assert err.participant_id == "p0-nano"
        assert err.wording == "A"

    @pytest.mark.asyncio
    async def test_oracle_error_passes_through_unwrapped(self):
        original = OracleError("unparseable reaction")
        oracle = AsyncMock()
        oracle.evaluate.side_effect = original
        with pytest.raises(OracleError) as exc_info:
            await EvaluationDispatcher(oracle, max_concurrency=1).dispatch(
                _run(n_participants=1, wordings=("A",))
            )
        assert exc_info.value is original
        assert exc_info.value.participant_id == "p0-nano"
