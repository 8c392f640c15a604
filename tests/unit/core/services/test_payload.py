from metquery.core.services.payload import dict_rows, number


def test_number_parses_numeric_strings():
    assert number("1.5") == 1.5
    assert number(7) == 7.0


def test_number_falls_back_on_missing_or_malformed():
    assert number(None) == 0.0
    assert number("n/a") == 0.0
    assert number({"usd": 1}) == 0.0
    assert number(False, default=50.0) == 50.0


def test_dict_rows_keeps_only_objects():
    assert dict_rows([{"a": 1}, "x", None, {"b": 2}]) == [{"a": 1}, {"b": 2}]
    assert dict_rows({"a": 1}) == []
    assert dict_rows(None) == []
