import pytest
from sqlalchemy import select, text

from models.dataset import Dataset
from models.table_context import EMBEDDING_DIMENSION, TableContext
from services.errors import IngestionError
from services.ingestion_service import IngestionService
from tests.conftest import FakeAIClient

SALES_CSV = (
    "Seller;Amount;Sold At;Note\n"
    "Ann;10;2024-01-01;first\n"
    "Ann;20;2024-01-02;\n"
    "Bob;5;2024-01-03;last\n"
)


def _contexts(db, table_name):
    return list(
        db.scalars(select(TableContext).where(TableContext.table_name == table_name).order_by(TableContext.id))
    )


def test_process_csv_end_to_end(db, ai_client, write_csv):
    path = write_csv("upload.csv", SALES_CSV)

    result = IngestionService(db, ai_client).process_csv(path, "Sales 2024.csv")

    assert result == {
        "tableName": "sales_2024",
        "columnsProcessed": 4,
        "columns": ["seller", "amount", "sold_at", "note"],
        "rowsImported": 3,
    }
    assert db.execute(text('SELECT COUNT(*) FROM "sales_2024"')).scalar() == 3

    contexts = _contexts(db, "sales_2024")
    assert [(c.column_name, c.data_type) for c in contexts] == [
        ("seller", "TEXT"),
        ("amount", "INTEGER"),
        ("sold_at", "DATE"),
        ("note", "TEXT"),
    ]
    assert all(c.description == "A generated description" for c in contexts)
    assert all(len(c.embedding) == EMBEDDING_DIMENSION for c in contexts)

    dataset = db.scalars(select(Dataset)).one()
    assert dataset.original_name == "Sales 2024.csv"
    assert dataset.internal_table_name == "sales_2024"
    assert dataset.column_count == 4
    assert dataset.row_count == 3
    assert dataset.column_stats["amount_sum_by_seller"] == {"Ann": 30, "Bob": 5}


def test_description_then_embedding_per_column(db, ai_client, write_csv):
    path = write_csv("upload.csv", "Order.Total\n1\n")

    IngestionService(db, ai_client).process_csv(path, "orders.csv")

    assert len(ai_client.prompts) == 1
    assert '"order_total"' in ai_client.prompts[0]
    assert '"orders.csv"' in ai_client.prompts[0]
    assert ai_client.embedded == ["order_total A generated description"]


def test_ai_failures_fall_back(db, write_csv):
    client = FakeAIClient(fail_complete=True, fail_embed=True)
    path = write_csv("upload.csv", "amount\n1\n")

    result = IngestionService(db, client).process_csv(path, "x.csv")

    assert result["rowsImported"] == 1
    (context,) = _contexts(db, "x")
    assert context.description == "Column amount"
    assert len(context.embedding) == EMBEDDING_DIMENSION
    assert all(v == 0 for v in context.embedding)


def test_header_only_file_imports_zero_rows(db, ai_client, write_csv):
    path = write_csv("upload.csv", "a,b\n")

    result = IngestionService(db, ai_client).process_csv(path, "empty.csv")

    assert result["rowsImported"] == 0
    assert db.scalars(select(Dataset)).one().column_stats is None


def test_reingest_replaces_table_and_contexts(db, ai_client, write_csv):
    service = IngestionService(db, ai_client)
    service.process_csv(write_csv("one.csv", "id,name\n1,a\n2,b\n3,c\n"), "people.csv")
    service.process_csv(write_csv("two.csv", "id,name\n9,z\n"), "people.csv")

    assert [tuple(r) for r in db.execute(text('SELECT id, name FROM "people"'))] == [(9, "z")]
    assert len(_contexts(db, "people")) == 2
    # registry rows are not merged; the newest one wins
    assert db.query(Dataset).count() == 2


def test_table_name_from_path_without_display_name(db, ai_client, write_csv):
    path = write_csv("Daily-Report.csv", "n\n1\n")
    assert IngestionService(db, ai_client).process_csv(path)["tableName"] == "daily_report"


def test_empty_file_aborts_before_table_creation(db, ai_client, write_csv):
    path = write_csv("upload.csv", "")

    with pytest.raises(IngestionError) as err:
        IngestionService(db, ai_client).process_csv(path, "nothing.csv")

    assert err.value.operation == "read CSV header"
    assert db.query(Dataset).count() == 0
    assert ai_client.prompts == []


def test_colliding_sanitized_names_fail_ingestion(db, ai_client, write_csv):
    path = write_csv("upload.csv", "Total,total\n1,2\n")

    with pytest.raises(IngestionError) as err:
        IngestionService(db, ai_client).process_csv(path, "dupes.csv")

    assert err.value.operation == "create table dupes"
    assert db.query(Dataset).count() == 0


def test_failed_insert_registers_nothing(db, ai_client, write_csv, monkeypatch):
    import services.table_materializer as table_materializer

    def failing_insert(*args, **kwargs):
        raise ValueError('invalid input syntax for type integer: "three"')

    monkeypatch.setattr(table_materializer, "insert_rows", failing_insert)
    path = write_csv("upload.csv", "n\n1\n2\n")

    with pytest.raises(IngestionError) as err:
        IngestionService(db, ai_client).process_csv(path, "numbers.csv")

    assert err.value.operation == "create table numbers"
    assert db.query(Dataset).count() == 0
    assert ai_client.prompts == []


def test_registry_failure_is_reported(db, ai_client, write_csv, monkeypatch):
    import services.ingestion_service as ingestion_service

    def broken_stats(*args, **kwargs):
        raise RuntimeError("datasets table missing")

    monkeypatch.setattr(ingestion_service, "calculate_column_stats", broken_stats)

    with pytest.raises(IngestionError) as err:
        IngestionService(db, ai_client).process_csv(write_csv("u.csv", "n\n1\n"), "n.csv")

    assert err.value.operation == "register dataset n"
    assert db.query(Dataset).count() == 0
