"""Tests for the saga runner."""

from kungfu import Error, LazyCoroResult, Ok

from settle.saga import SagaStep, run_saga


def step(name: str, result, undone: list[str], *, undo_fails: bool = False) -> SagaStep:
    async def action():
        return result

    async def compensate(value):
        if undo_fails:
            raise RuntimeError(f"cannot undo {name}")
        undone.append(f"{name}:{value}")
        return Ok(None)

    return SagaStep(name=name, action=LazyCoroResult(action), compensate=compensate)


class TestRunSaga:
    async def test_all_steps_succeed(self):
        undone: list[str] = []

        result = await run_saga([step("a", Ok(1), undone), step("b", Ok(2), undone)])

        done = result.unwrap()
        assert done.values == (1, 2)
        assert done.steps_executed == 2
        assert done.compensators_recorded == 2
        assert undone == []

    async def test_failure_compensates_newest_first(self):
        undone: list[str] = []

        result = await run_saga([
            step("a", Ok(1), undone),
            step("b", Ok(2), undone),
            step("c", Error("boom"), undone),
            step("d", Ok(4), undone),
        ])

        assert isinstance(result, Error)
        failed = result.error
        assert failed.error == "boom"
        assert failed.step_failed == 3
        assert failed.step_name == "c"
        assert failed.rollback_complete
        assert undone == ["b:2", "a:1"]

    async def test_failed_compensation_is_reported(self):
        undone: list[str] = []

        result = await run_saga([
            step("a", Ok(1), undone),
            step("b", Ok(2), undone, undo_fails=True),
            step("c", Error("boom"), undone),
        ])

        assert isinstance(result, Error)
        assert result.error.compensators_run == 1
        assert result.error.compensators_failed == 1
        assert not result.error.rollback_complete
        assert undone == ["a:1"]
