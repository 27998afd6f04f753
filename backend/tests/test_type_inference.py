import pytest

from services.csv_reader import ColumnDescriptor
from services.type_inference import (
    DATE,
    FLOAT,
    INTEGER,
    TEXT,
    infer_column_type,
    infer_column_types,
)


@pytest.mark.parametrize(
    "values, expected",
    [
        (["1", "2", "3"], INTEGER),
        (["-4", "0", "12"], INTEGER),
        (["1.5", "2", "3.25"], FLOAT),
        (["1.", "-2.0"], FLOAT),
        (["2024-01-01", "2024-01-02"], DATE),
        (["03/15/2024", "March 3, 2024"], DATE),
        (["10:30", "11:45"], TEXT),
        (["2pm"], TEXT),
        (["1 2"], TEXT),
        (["a", "1", "2024-01-01"], TEXT),
        ([], TEXT),
        (["", None, ""], TEXT),
    ],
)
def test_classification(values, expected):
    assert infer_column_type(values) == expected


def test_empty_values_are_ignored():
    assert infer_column_type(["", "7", None, "8"]) == INTEGER


def test_integer_wins_over_float_and_date():
    # "2024" would also parse as a float and as a year
    assert infer_column_type(["2024", "2025"]) == INTEGER


def test_sample_is_bounded(write_csv):
    lines = ["n"] + [str(i) for i in range(100)] + ["not a number"]
    path = write_csv("big.csv", "\n".join(lines) + "\n")
    columns = [ColumnDescriptor(name="n", original_header="n")]

    assert infer_column_types(path, columns, ",")[0].type == INTEGER
    assert infer_column_types(path, columns, ",", sample_size=101)[0].type == TEXT


def test_types_follow_original_headers(write_csv):
    path = write_csv("t.csv", "Unit Price;When;Who\n1.5;2024-03-01;ann\n2;2024-03-02;bob\n")
    columns = [
        ColumnDescriptor(name="unit_price", original_header="Unit Price"),
        ColumnDescriptor(name="when", original_header="When"),
        ColumnDescriptor(name="who", original_header="Who"),
    ]
    typed = infer_column_types(path, columns, ";")
    assert [c.type for c in typed] == [FLOAT, DATE, TEXT]


def test_time_column_is_created_as_text(write_csv):
    path = write_csv("flights.csv", "Departure,Gate\n10:30,A1\n11:45,B2\n")
    columns = [
        ColumnDescriptor(name="departure", original_header="Departure"),
        ColumnDescriptor(name="gate", original_header="Gate"),
    ]
    assert [c.type for c in infer_column_types(path, columns, ",")] == [TEXT, TEXT]
