import pytest
from datetime import date

from app.core.cycles.errors import (
    CycleLockedError, CycleNotFoundError, DateOutsideCycleError, DispatchError,
    EvidenceNotFoundError, EvidenceRequiredError, InvalidHoursError, NotConfiguredError,
)
from app.core.cycles.generator import Frequency
from app.core.cycles.store import CYCLES_KEY, CycleRepository
from conftest import FailingStore, RecordingDispatcher, make_manager, run, screenshot

CURRENT = "cycle-2024-01-08"
PREVIOUS = "cycle-2024-01-01"


def test_regenerate_returns_newest_first(weekly_manager):
    assert [c.id for c in weekly_manager.cycles()] == [CURRENT, PREVIOUS]
    assert weekly_manager.current_cycle().id == CURRENT


def test_total_hours_follows_entries(weekly_manager):
    run(weekly_manager.record_hours(CURRENT, date(2024, 1, 9), 6))
    cycle = run(weekly_manager.record_hours(CURRENT, date(2024, 1, 10), 4))
    assert cycle.total_hours == 10
    cycle = run(weekly_manager.record_hours(CURRENT, date(2024, 1, 9), 3))
    assert cycle.total_hours == 7
    assert weekly_manager.get_cycle(CURRENT).total_hours == 7


def test_record_hours_persists_immediately(store, weekly_manager):
    run(weekly_manager.record_hours(CURRENT, date(2024, 1, 9), 8))
    reloaded = make_manager(store)
    run(reloaded.load())
    assert reloaded.get_cycle(CURRENT).hours == {date(2024, 1, 9): 8}


def test_previous_cycle_is_editable_until_submitted(weekly_manager):
    cycle = run(weekly_manager.record_hours(PREVIOUS, date(2024, 1, 5), 8))
    assert cycle.total_hours == 8


def test_record_hours_outside_cycle_rejected(weekly_manager):
    with pytest.raises(DateOutsideCycleError):
        run(weekly_manager.record_hours(CURRENT, date(2024, 1, 7), 8))
    assert weekly_manager.get_cycle(CURRENT).hours == {}


@pytest.mark.parametrize("value", [-1, 24.5])
def test_record_hours_out_of_range_rejected(weekly_manager, value):
    with pytest.raises(InvalidHoursError):
        run(weekly_manager.record_hours(CURRENT, date(2024, 1, 9), value))


def test_record_hours_bounds_accepted(weekly_manager):
    run(weekly_manager.record_hours(CURRENT, date(2024, 1, 9), 0))
    cycle = run(weekly_manager.record_hours(CURRENT, date(2024, 1, 10), 24))
    assert cycle.hours == {date(2024, 1, 9): 0, date(2024, 1, 10): 24}


def test_unknown_cycle(weekly_manager):
    with pytest.raises(CycleNotFoundError):
        run(weekly_manager.record_hours("cycle-2030-01-01", date(2030, 1, 1), 1))


def test_operations_before_configuration():
    manager = make_manager()
    assert run(manager.load()) == []
    with pytest.raises(NotConfiguredError):
        manager.get_cycle(CURRENT)
    with pytest.raises(NotConfiguredError):
        manager.summary()


def test_start_after_today_has_no_cycles():
    manager = make_manager(today=date(2024, 1, 10))
    assert run(manager.regenerate(date(2024, 2, 1), Frequency.WEEKLY)) == []
    assert manager.current_cycle() is None


def test_evidence_attach_and_remove(weekly_manager):
    run(weekly_manager.attach_evidence(CURRENT, screenshot("a.png")))
    run(weekly_manager.attach_evidence(CURRENT, screenshot("b.png")))
    cycle = run(weekly_manager.remove_evidence(CURRENT, 0))
    assert [e.filename for e in cycle.evidence] == ["b.png"]
    with pytest.raises(EvidenceNotFoundError):
        run(weekly_manager.remove_evidence(CURRENT, 5))


def test_submit_requires_evidence(weekly_manager):
    run(weekly_manager.record_hours(CURRENT, date(2024, 1, 9), 8))
    with pytest.raises(EvidenceRequiredError, match="evidence attachment required"):
        run(weekly_manager.submit(CURRENT))
    assert weekly_manager.get_cycle(CURRENT).submitted is False


def test_submit_locks_cycle_and_dispatches_payload(store):
    dispatcher = RecordingDispatcher()
    manager = make_manager(store, dispatcher=dispatcher)
    run(manager.regenerate(date(2024, 1, 1), Frequency.WEEKLY))
    run(manager.record_hours(CURRENT, date(2024, 1, 9), 8))
    run(manager.record_hours(CURRENT, date(2024, 1, 8), 7.5))
    run(manager.attach_evidence(CURRENT, screenshot()))

    cycle = run(manager.submit(CURRENT))

    assert cycle.submitted is True
    assert cycle.is_editable is False
    [payload] = dispatcher.payloads
    assert payload.period_start == date(2024, 1, 8)
    assert payload.period_end == date(2024, 1, 14)
    assert payload.total_hours == 15.5
    assert payload.frequency is Frequency.WEEKLY
    assert [(d.day, d.hours) for d in payload.per_day] == [(date(2024, 1, 8), 7.5), (date(2024, 1, 9), 8)]
    assert len(payload.evidence) == 1

    reloaded = make_manager(store)
    run(reloaded.load())
    assert reloaded.get_cycle(CURRENT).submitted is True


def test_submit_forwards_at_most_three_evidence_items(weekly_manager):
    for i in range(5):
        run(weekly_manager.attach_evidence(CURRENT, screenshot(f"{i}.png")))
    run(weekly_manager.submit(CURRENT))
    [payload] = weekly_manager.dispatcher.payloads
    assert [e.filename for e in payload.evidence] == ["0.png", "1.png", "2.png"]
    assert len(weekly_manager.get_cycle(CURRENT).evidence) == 5


def test_locked_cycle_is_immutable(store, weekly_manager):
    run(weekly_manager.record_hours(CURRENT, date(2024, 1, 9), 8))
    run(weekly_manager.attach_evidence(CURRENT, screenshot()))
    run(weekly_manager.submit(CURRENT))
    stored_before = store.data[CYCLES_KEY]

    with pytest.raises(CycleLockedError):
        run(weekly_manager.record_hours(CURRENT, date(2024, 1, 9), 2))
    with pytest.raises(CycleLockedError):
        run(weekly_manager.attach_evidence(CURRENT, screenshot("late.png")))
    with pytest.raises(CycleLockedError):
        run(weekly_manager.remove_evidence(CURRENT, 0))
    with pytest.raises(CycleLockedError):
        run(weekly_manager.submit(CURRENT))

    assert store.data[CYCLES_KEY] == stored_before
    assert weekly_manager.get_cycle(CURRENT).hours == {date(2024, 1, 9): 8}


@pytest.mark.parametrize("dispatcher", [
    RecordingDispatcher(result=False),
    RecordingDispatcher(error=ConnectionError("smtp down")),
])
def test_failed_dispatch_keeps_cycle_editable(store, dispatcher):
    manager = make_manager(store, dispatcher=dispatcher)
    run(manager.regenerate(date(2024, 1, 1), Frequency.WEEKLY))
    run(manager.attach_evidence(CURRENT, screenshot()))

    with pytest.raises(DispatchError):
        run(manager.submit(CURRENT))

    assert manager.get_cycle(CURRENT).submitted is False
    [saved] = [c for c in run(CycleRepository(store).load_cycles()) if c.id == CURRENT]
    assert saved.submitted is False


def test_storage_failure_leaves_memory_unchanged():
    store = FailingStore()
    manager = make_manager(store)
    run(manager.regenerate(date(2024, 1, 1), Frequency.WEEKLY))
    run(manager.record_hours(CURRENT, date(2024, 1, 9), 8))

    store.fail_writes = True
    with pytest.raises(OSError):
        run(manager.record_hours(CURRENT, date(2024, 1, 9), 2))
    with pytest.raises(OSError):
        run(manager.attach_evidence(CURRENT, screenshot()))

    cycle = manager.get_cycle(CURRENT)
    assert cycle.hours == {date(2024, 1, 9): 8}
    assert cycle.evidence == []


def test_storage_failure_during_submit_does_not_lock():
    store = FailingStore()
    manager = make_manager(store)
    run(manager.regenerate(date(2024, 1, 1), Frequency.WEEKLY))
    run(manager.attach_evidence(CURRENT, screenshot()))
    store.fail_writes = True
    with pytest.raises(OSError):
        run(manager.submit(CURRENT))
    assert manager.get_cycle(CURRENT).submitted is False


def test_returned_cycles_are_copies(weekly_manager):
    cycle = weekly_manager.get_cycle(CURRENT)
    cycle.hours[date(2024, 1, 9)] = 12
    assert weekly_manager.get_cycle(CURRENT).hours == {}


def test_frequency_change_orphans_unmatched_cycles(store, weekly_manager):
    run(weekly_manager.record_hours(PREVIOUS, date(2024, 1, 2), 5))
    run(weekly_manager.record_hours(CURRENT, date(2024, 1, 9), 8))

    monthly = run(weekly_manager.regenerate(date(2024, 1, 1), Frequency.MONTHLY))

    # The first cycle keeps its id across frequencies and carries its data along.
    assert [c.id for c in monthly] == [PREVIOUS]
    assert monthly[0].end_date == date(2024, 1, 31)
    assert monthly[0].hours == {date(2024, 1, 2): 5}
    # The second weekly cycle has no monthly counterpart; its data is not merged in.
    assert date(2024, 1, 9) not in monthly[0].hours

    # Orphaned data stays in storage, survives further writes, and returns with the old boundaries.
    run(weekly_manager.record_hours(PREVIOUS, date(2024, 1, 20), 4))
    assert CURRENT in store.data[CYCLES_KEY]
    weekly = run(weekly_manager.regenerate(date(2024, 1, 1), Frequency.WEEKLY))
    by_id = {c.id: c for c in weekly}
    assert by_id[CURRENT].hours == {date(2024, 1, 9): 8}

    # Saved hours win over the regenerated interval: the entry for 01-20 stays on
    # the shortened first cycle and still counts towards its total.
    first = by_id[PREVIOUS]
    assert first.end_date == date(2024, 1, 7)
    assert first.hours == {date(2024, 1, 2): 5, date(2024, 1, 20): 4}
    assert not first.contains(date(2024, 1, 20))
    assert first.total_hours == 9


def test_load_regenerates_up_to_today(store, weekly_manager):
    run(weekly_manager.record_hours(CURRENT, date(2024, 1, 9), 8))
    later = make_manager(store, today=date(2024, 1, 25))
    cycles = run(later.load())
    assert [c.id for c in cycles] == ["cycle-2024-01-22", "cycle-2024-01-15", CURRENT, PREVIOUS]
    assert later.get_cycle(CURRENT).hours == {date(2024, 1, 9): 8}


def test_summary(weekly_manager):
    run(weekly_manager.record_hours(PREVIOUS, date(2024, 1, 2), 8))
    run(weekly_manager.attach_evidence(PREVIOUS, screenshot()))
    run(weekly_manager.submit(PREVIOUS))
    run(weekly_manager.record_hours(CURRENT, date(2024, 1, 9), 4))

    summary = weekly_manager.summary()
    assert summary.total_cycles == 2
    assert summary.submitted_cycles == 1
    assert summary.pending_cycles == 1
    assert summary.total_hours == 12
    assert summary.submitted_hours == 8
    assert summary.current_cycle_id == CURRENT


def _two_managers(store):
    first = make_manager(store)
    run(first.regenerate(date(2024, 1, 1), Frequency.WEEKLY))
    second = make_manager(store)
    run(second.load())
    return first, second


def test_edit_from_earlier_load_keeps_other_managers_lock(store):
    first, second = _two_managers(store)
    run(first.attach_evidence(PREVIOUS, screenshot()))
    run(first.submit(PREVIOUS))

    run(second.record_hours(CURRENT, date(2024, 1, 9), 8))

    reloaded = make_manager(store)
    run(reloaded.load())
    assert reloaded.get_cycle(PREVIOUS).submitted is True
    assert reloaded.get_cycle(CURRENT).hours == {date(2024, 1, 9): 8}
    assert second.get_cycle(PREVIOUS).submitted is True


def test_edit_from_earlier_load_refused_on_cycle_locked_meanwhile(store):
    first, second = _two_managers(store)
    run(first.attach_evidence(CURRENT, screenshot()))
    run(first.submit(CURRENT))

    with pytest.raises(CycleLockedError):
        run(second.record_hours(CURRENT, date(2024, 1, 9), 8))
    with pytest.raises(CycleLockedError):
        run(second.submit(CURRENT))
    assert second.dispatcher.payloads == []

    reloaded = make_manager(store)
    run(reloaded.load())
    assert reloaded.get_cycle(CURRENT).submitted is True
    assert reloaded.get_cycle(CURRENT).hours == {}


def test_edits_from_two_managers_to_one_cycle_combine(store):
    first, second = _two_managers(store)
    run(first.record_hours(CURRENT, date(2024, 1, 8), 6))
    run(second.record_hours(CURRENT, date(2024, 1, 9), 7))

    reloaded = make_manager(store)
    run(reloaded.load())
    assert reloaded.get_cycle(CURRENT).hours == {date(2024, 1, 8): 6, date(2024, 1, 9): 7}
