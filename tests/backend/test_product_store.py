import pytest

from partassist.storage.db_models import Part
from partassist.storage.product_store import ProductStore
from partassist.storage.seed import seed_parts


@pytest.fixture
def store(session_factory):
    seed_parts(session_factory)
    return ProductStore(session_factory)


def part_id(session_factory, part_number):
    db = session_factory()
    try:
        return db.query(Part).filter(Part.part_number == part_number).one().id
    finally:
        db.close()


class TestProductStore:

    def test_seed_is_idempotent(self, session_factory):
        assert seed_parts(session_factory) == 2
        assert seed_parts(session_factory) == 0

    def test_find_by_part_number_ignores_case(self, store):
        [product] = store.find_by_part_number(" ps11752778 ")
        assert product.part_number == "PS11752778"
        assert product.price == 24.99
        assert product.reviews == 58
        assert product.product_url.endswith("PS11752778")

    def test_unknown_part(self, store):
        assert store.find_by_part_number("PS00000000") == []

    def test_search_text(self, store):
        results = store.search_text("drain")
        assert [p.part_number for p in results] == ["PS11757304"]
        assert [p.part_number for p in store.search_text(appliance_type="Refrigerator")] == ["PS11752778"]

    def test_compatible(self, store):
        result = store.check_compatibility("PS11752778", "wrs325sdhz01")
        assert result.is_compatible
        assert "designed for your wrs325sdhz01" in result.details

    def test_not_listed(self, store):
        result = store.check_compatibility("PS11752778", "WDT780SAEM1")
        assert not result.is_compatible
        assert "search for parts that fit your WDT780SAEM1" in result.alternative_suggestion

    def test_part_not_found(self, store):
        result = store.check_compatibility("PS00000000", "WDT780SAEM1")
        assert not result.is_compatible
        assert "not found" in result.details


class TestSimilaritySearch:

    def test_no_embeddings_returns_nothing(self, store):
        assert store.search_similar([1.0, 0.0, 0.0]) == []

    def test_nearest_parts_first(self, store, session_factory):
        store.set_embedding(part_id(session_factory, "PS11752778"), [1.0, 0.0, 0.0])
        store.set_embedding(part_id(session_factory, "PS11757304"), [0.0, 1.0, 0.0])

        results = store.search_similar([0.9, 0.1, 0.0], k=2)

        assert [p.part_number for p in results] == ["PS11752778", "PS11757304"]
        assert results[0].similarity > results[1].similarity
        assert results[0].similarity <= 1.0 + 1e-6

    def test_k_limits_results(self, store, session_factory):
        store.set_embedding(part_id(session_factory, "PS11752778"), [1.0, 0.0])
        store.set_embedding(part_id(session_factory, "PS11757304"), [0.0, 1.0])

        assert len(store.search_similar([0.0, 1.0], k=1)) == 1

    def test_new_embedding_rebuilds_index(self, store, session_factory):
        store.set_embedding(part_id(session_factory, "PS11752778"), [1.0, 0.0])
        assert len(store.search_similar([1.0, 0.0], k=5)) == 1

        store.set_embedding(part_id(session_factory, "PS11757304"), [0.0, 1.0])
        assert len(store.search_similar([1.0, 0.0], k=5)) == 2

    def test_dimension_mismatch_raises(self, store, session_factory):
        store.set_embedding(part_id(session_factory, "PS11752778"), [1.0, 0.0])
        with pytest.raises(ValueError):
            store.search_similar([1.0, 0.0, 0.0])

    def test_parts_missing_embeddings(self, store, session_factory):
        store.set_embedding(part_id(session_factory, "PS11752778"), [1.0, 0.0])
        assert [p.part_number for p in store.parts_missing_embeddings()] == ["PS11757304"]
