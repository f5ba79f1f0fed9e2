import pytest

from conftest import embed_text, make_chunk
from void_index.errors import InvalidArgumentError, SchemaError
from void_index.storage.vector import (VectorStore, existing_table_names,
                                       quote_literal)


def test_vector_store_schema_on_first_write(tmp_path):
    store = VectorStore(tmp_path / "index.lance")
    assert store.dimension is None
    assert store.count() == 0

    store.insert("a.py", make_chunk("def a(): pass"), [0.1, 0.2, 0.3, 0.4])

    assert store.dimension == 4
    assert store.count() == 1
    assert store.count("a.py") == 1


def test_insert_assigns_unique_ids(tmp_path):
    store = VectorStore(tmp_path / "index.lance")
    chunk = make_chunk("def a(): pass")
    ids = {store.insert("a.py", chunk, [1.0, 0.0, 0.0]) for _ in range(3)}
    assert len(ids) == 3


def test_dimension_mismatch_leaves_table_unchanged(tmp_path):
    store = VectorStore(tmp_path / "index.lance")
    store.insert("a.py", make_chunk("one"), [0.1, 0.2, 0.3, 0.4])

    with pytest.raises(SchemaError):
        store.insert("a.py", make_chunk("two"), [0.1, 0.2, 0.3])

    assert store.count() == 1
    assert store.dimension == 4


def test_reopen_reads_existing_dimension(tmp_path):
    db_path = tmp_path / "index.lance"
    VectorStore(db_path).insert("a.py", make_chunk("x"), [1.0, 2.0])

    reopened = VectorStore(db_path)
    assert reopened.dimension == 2
    assert reopened.count() == 1
    with pytest.raises(SchemaError):
        reopened.insert("b.py", make_chunk("y"), [1.0, 2.0, 3.0])


def test_delete_by_path_is_exact_match(tmp_path):
    store = VectorStore(tmp_path / "index.lance")
    store.insert("src/a.py", make_chunk("a"), [1.0, 0.0])
    store.insert("src/a.py.bak", make_chunk("b"), [0.0, 1.0])
    store.insert("src/ab.py", make_chunk("c"), [1.0, 1.0])

    deleted = store.delete_by_path("src/a.py")

    assert deleted == 1
    assert store.count("src/a.py") == 0
    assert store.count("src/a.py.bak") == 1
    assert store.count("src/ab.py") == 1


def test_delete_by_path_escapes_quotes(tmp_path):
    store = VectorStore(tmp_path / "index.lance")
    tricky = "it's' OR path != '"
    store.insert(tricky, make_chunk("tricky"), [1.0, 0.0])
    store.insert("keep.py", make_chunk("keep"), [0.0, 1.0])

    assert store.delete_by_path(tricky) == 1
    assert store.count() == 1
    assert store.count("keep.py") == 1


def test_quote_literal_doubles_single_quotes():
    assert quote_literal("a'b") == "'a''b'"
    assert quote_literal("") == "''"


def test_delete_nonexistent_is_noop(tmp_path):
    store = VectorStore(tmp_path / "index.lance")
    # No table yet
    assert store.delete_by_path("missing.py") == 0

    store.insert("a.py", make_chunk("a"), [1.0, 0.0])
    assert store.delete_by_path("missing.py") == 0
    assert store.count() == 1


def test_search_without_table_returns_empty(tmp_path):
    store = VectorStore(tmp_path / "index.lance")
    assert store.search([1.0, 0.0], limit=5) == []


@pytest.mark.parametrize("limit", [0, -1])
def test_search_rejects_non_positive_limit(tmp_path, limit):
    store = VectorStore(tmp_path / "index.lance")
    with pytest.raises(InvalidArgumentError):
        store.search([1.0, 0.0], limit=limit)


def test_search_orders_by_distance_and_populates_score(tmp_path):
    store = VectorStore(tmp_path / "index.lance")
    add_vec = embed_text("fn add(a,b)")
    dog_vec = embed_text("class Dog")
    store.insert("math.rs", make_chunk("fn add(a,b)", start=1, end=1), add_vec)
    store.insert("pets.py", make_chunk("class Dog", chunk_type="class"), dog_vec)

    results = store.search(add_vec, limit=10)

    assert [r.content for r in results] == ["fn add(a,b)", "class Dog"]
    assert results[0].path == "math.rs"
    assert results[0].score == pytest.approx(0.0, abs=1e-5)
    assert results[0].score <= results[1].score
    assert results[1].score > 0.0
    assert results[1].chunk_type == "class"


def test_search_respects_limit(tmp_path):
    store = VectorStore(tmp_path / "index.lance")
    for i in range(5):
        store.insert(f"f{i}.py", make_chunk(f"chunk {i}"), embed_text(f"chunk {i}"))

    assert len(store.search(embed_text("chunk 0"), limit=2)) == 2


def test_search_query_dimension_mismatch(tmp_path):
    store = VectorStore(tmp_path / "index.lance")
    store.insert("a.py", make_chunk("a"), [1.0, 0.0, 0.0])
    with pytest.raises(SchemaError):
        store.search([1.0, 0.0], limit=1)


def test_cosine_metric(tmp_path):
    store = VectorStore(tmp_path / "index.lance", metric="cosine")
    store.insert("a.py", make_chunk("a"), [1.0, 0.0])
    store.insert("b.py", make_chunk("b"), [0.0, 1.0])

    results = store.search([2.0, 0.0], limit=2)

    assert results[0].path == "a.py"
    assert results[0].score == pytest.approx(0.0, abs=1e-5)


class _PagedTables:
    def __init__(self, tables, page_token=None):
        self.tables = tables
        self.page_token = page_token


class PagedConnection:
    """Connection double whose list_tables() pages like current lancedb."""

    def __init__(self):
        self.tokens = []

    def list_tables(self, page_token=None):
        self.tokens.append(page_token)
        if page_token is None:
            return _PagedTables(["a", "b"], page_token="b")
        return _PagedTables(["code_chunks"])

    def table_names(self):
        raise AssertionError("table_names() should not be used when list_tables() exists")


class LegacyConnection:
    def table_names(self):
        return ["code_chunks"]


def test_existing_table_names_follows_pages():
    db = PagedConnection()
    assert existing_table_names(db) == {"a", "b", "code_chunks"}
    assert db.tokens == [None, "b"]


def test_existing_table_names_falls_back_to_table_names():
    assert existing_table_names(LegacyConnection()) == {"code_chunks"}
