import pytest

from k3dflux.deploy.executor import run_steps
from k3dflux.deploy.steps import FailurePolicy, best_effort, fatal
from k3dflux.errors import ConvergenceTimeout, FatalProvisioningError
from k3dflux.observers.dispatcher import EventBus
from k3dflux.observers.events import (
    RunStarted,
    RunSummary,
    StepFailed,
    StepStarted,
    StepSucceeded,
    StepWarned,
)


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


def _boom(msg):
    def action():
        raise RuntimeError(msg)
    return action


def test_all_steps_succeed_in_order():
    ran = []
    cap = Capture()
    steps = [
        fatal("a", "A", lambda: ran.append("a")),
        best_effort("b", "B", lambda: ran.append("b")),
        fatal("c", "C", lambda: ran.append("c")),
    ]

    report = run_steps(steps, bus=EventBus([cap]))

    assert ran == ["a", "b", "c"]
    assert not report.aborted
    assert report.summary() == "OK=3 WARNED=0 FAILED=0"
    assert isinstance(cap.events[0], RunStarted)
    assert cap.events[0].steps == ["a", "b", "c"]
    assert isinstance(cap.events[-1], RunSummary)
    assert sum(isinstance(e, StepSucceeded) for e in cap.events) == 3


def test_fatal_failure_stops_the_run_without_rollback():
    ran = []
    cap = Capture()
    steps = [
        fatal("a", "A", lambda: ran.append("a")),
        fatal("create", "Create", _boom("k3d: port 6443 already allocated")),
        fatal("c", "C", lambda: ran.append("c")),
    ]

    report = run_steps(steps, bus=EventBus([cap]))

    assert ran == ["a"]
    assert report.aborted
    assert [o.name for o in report.outcomes] == ["a", "create"]

    failed = next(e for e in cap.events if isinstance(e, StepFailed))
    assert failed.name == "create"
    assert "port 6443 already allocated" in failed.error

    summary = cap.events[-1]
    assert summary.aborted and summary.failed == 1

    with pytest.raises(FatalProvisioningError) as exc:
        report.raise_for_failure()
    assert exc.value.step == "create"
    assert "port 6443 already allocated" in str(exc.value)


def test_best_effort_failure_warns_and_continues():
    ran = []
    cap = Capture()

    def wait():
        raise ConvergenceTimeout("gitrepository", "flux-system", 120, "timed out waiting for the condition")

    steps = [
        best_effort("wait-source", "Wait", wait, hint="flux get sources git -n flux-system"),
        fatal("after", "After", lambda: ran.append("after")),
    ]

    report = run_steps(steps, bus=EventBus([cap]))

    assert ran == ["after"]
    assert not report.aborted
    assert [w.name for w in report.warnings] == ["wait-source"]
    report.raise_for_failure()

    warned = next(e for e in cap.events if isinstance(e, StepWarned))
    assert warned.hint == "flux get sources git -n flux-system"
    assert "not ready after 120s" in warned.error


def test_step_started_carries_policy():
    cap = Capture()
    run_steps(
        [fatal("a", "A", lambda: None), best_effort("b", "B", lambda: None)],
        bus=EventBus([cap]),
    )
    started = [e for e in cap.events if isinstance(e, StepStarted)]
    assert [e.policy for e in started] == [FailurePolicy.FATAL.value, FailurePolicy.BEST_EFFORT.value]


def test_observer_failure_does_not_break_the_run():
    class Broken:
        def notify(self, ev):
            raise ValueError("observer bug")

    cap = Capture()
    report = run_steps([fatal("a", "A", lambda: None)], bus=EventBus([Broken(), cap]))

    assert not report.aborted
    assert isinstance(cap.events[-1], RunSummary)
