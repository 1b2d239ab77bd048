from src.pipeline.cascade import Strategy, first_value, run_all, run_cascade
from src.pipeline.page import StaticPage

PAGE = StaticPage("https://example.com/", "<p>x</p>")


def boom(page):
    raise RuntimeError("selector exploded")


def test_first_truthy_strategy_wins_and_is_named():
    strategies = [
        Strategy("empty", lambda p: ""),
        Strategy("raises", boom),
        Strategy("hit", lambda p: "value"),
        Strategy("never", lambda p: "other"),
    ]
    hit = run_cascade(strategies, PAGE)
    assert hit.value == "value"
    assert hit.strategy == "hit"


def test_total_miss():
    strategies = [Strategy("a", lambda p: None), Strategy("b", boom)]
    assert run_cascade(strategies, PAGE) is None
    assert first_value(strategies, PAGE) == ""


def test_run_all_collects_every_hit():
    strategies = [Strategy("a", lambda p: [1]), Strategy("b", lambda p: []), Strategy("c", lambda p: [2])]
    assert [h.strategy for h in run_all(strategies, PAGE)] == ["a", "c"]
