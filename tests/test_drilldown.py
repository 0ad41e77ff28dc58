import pandas as pd

from pizarro.drilldown import DrillDown

LEVELS = ("category", "subcategory", "detail")


def _frame():
    return pd.DataFrame(
        {
            "category": ["X", "X", "X", "Y"],
            "subcategory": ["x1", "x1", "x2", "y1"],
            "detail": ["a", "b", "c", "d"],
            "amount": [1.0, 2.0, 4.0, 8.0],
        }
    )


def test_toggle_twice_restores_state():
    drill = DrillDown(LEVELS)
    assert drill.toggle("category", "X").toggle("category", "X") == drill


def test_toggle_replaces_and_truncates_deeper_levels():
    drill = DrillDown(LEVELS).toggle("category", "X").toggle("subcategory", "x1")
    assert drill.selected == ("X", "x1")
    assert drill.toggle("category", "Y").selected == ("Y",)


def test_toggle_deeper_level_without_parent_is_ignored():
    drill = DrillDown(LEVELS)
    assert drill.toggle("subcategory", "x1") == drill


def test_from_path_stops_at_blank():
    drill = DrillDown.from_path(LEVELS, ["X", "", "c"])
    assert drill.selected == ("X",)
    assert DrillDown.from_path(LEVELS, []).is_active is False


def test_scope_and_tables():
    df = _frame()
    drill = DrillDown.from_path(LEVELS, ["X"])
    assert drill.scope(df)["amount"].sum() == 7.0
    table = drill.table(df, "subcategory", "amount")
    assert table["name"].tolist() == ["x2", "x1"]
    # the top level table ignores its own selection
    assert drill.table(df, "category", "amount")["name"].tolist() == ["Y", "X"]


def test_distribution_level_and_label():
    drill = DrillDown(LEVELS)
    assert drill.distribution_level == "category"
    assert drill.label is None
    deep = DrillDown.from_path(LEVELS, ["X", "x1", "a"])
    assert deep.distribution_level == "detail"
    assert deep.label == "a"
    assert deep.clear().depth == 0


def test_scope_matches_blank_and_missing_values_as_na():
    df = pd.DataFrame(
        {
            "category": ["X", " ", None, "Y "],
            "subcategory": ["x1", "n1", "n2", "y1"],
            "detail": ["a", "b", "c", "d"],
            "amount": [1.0, 2.0, 4.0, 8.0],
        }
    )
    drill = DrillDown.from_path(LEVELS, ["N/A"])
    assert drill.scope(df)["amount"].sum() == 6.0
    assert drill.table(df, "subcategory", "amount")["name"].tolist() == ["n2", "n1"]
    assert DrillDown.from_path(LEVELS, ["Y"]).scope(df)["amount"].sum() == 8.0
