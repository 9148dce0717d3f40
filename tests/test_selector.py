from geofix.models import Fix
from geofix.selector import BestFixSelector, fold_best, select_best


def _fix(accuracy: float, captured_at: float = 1.0) -> Fix:
    return Fix(
        latitude=52.615,
        longitude=-1.123,
        accuracy_meters=accuracy,
        captured_at=captured_at,
    )


def test_select_best_takes_sample_when_nothing_held() -> None:
    sample = _fix(40.0)

    assert select_best(None, sample) is sample


def test_select_best_prefers_smaller_accuracy() -> None:
    current = _fix(40.0)
    better = _fix(12.0)
    worse = _fix(75.0)

    assert select_best(current, better) is better
    assert select_best(current, worse) is current


def test_select_best_keeps_current_on_tie() -> None:
    current = _fix(25.0, captured_at=1.0)
    newer = _fix(25.0, captured_at=2.0)

    assert select_best(current, newer) is current


def test_best_accuracy_is_non_increasing() -> None:
    selector = BestFixSelector()
    history = []

    for accuracy in [60.0, 80.0, 45.0, 45.0, 90.0, 12.0, 30.0, 12.0, 3.5, 100.0]:
        selector.update(_fix(accuracy))
        history.append(selector.best_accuracy_meters)

    assert history == sorted(history, reverse=True)
    assert selector.best_accuracy_meters == 3.5
    assert selector.samples == 10


def test_selector_update_reports_replacement() -> None:
    selector = BestFixSelector()

    assert selector.best_accuracy_meters is None
    assert selector.update(_fix(50.0)) is True
    assert selector.update(_fix(50.0)) is False
    assert selector.update(_fix(70.0)) is False
    assert selector.update(_fix(10.0)) is True


def test_fold_best_returns_none_for_empty_input() -> None:
    assert fold_best([]) is None
    assert fold_best([_fix(30.0), _fix(15.0), _fix(20.0)]).accuracy_meters == 15.0
