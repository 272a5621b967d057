"""
Structured product store: exact part lookup, similarity search over part
embeddings and part/model compatibility.
"""
import threading
from typing import Callable, List, Optional, Sequence

import faiss
import numpy as np
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from partassist.core.config import settings
from partassist.core.models import CompatibilityResult, ProductRef
from partassist.storage.db import SessionLocal
from partassist.storage.db_models import Part, PartCompatibility
from partassist.utils.logger import get_logger

logger = get_logger(__name__)


def to_product_ref(part: Part, similarity: Optional[float] = None) -> ProductRef:
    return ProductRef(
        part_number=part.part_number,
        name=part.name,
        description=part.description,
        price=float(part.price or 0),
        in_stock=True if part.in_stock is None else bool(part.in_stock),
        image_url=part.image_url or "/placeholder-part.png",
        product_url=settings.PRODUCT_URL_TEMPLATE.format(part_number=part.part_number),
        rating=float(part.rating) if part.rating is not None else 4.3,
        reviews=part.review_count if part.review_count is not None else 19,
        similarity=similarity,
    )


class _PartIndex:
    """Inner-product FAISS index over L2-normalized part embeddings (cosine)."""

    def __init__(self, part_ids: List[int], vectors: np.ndarray):
        self.part_ids = part_ids
        self.dimension = vectors.shape[1]
        faiss.normalize_L2(vectors)
        self.index = faiss.IndexFlatIP(self.dimension)
        self.index.add(vectors)

    def search(self, vector: Sequence[float], k: int):
        query = np.array([vector], dtype=np.float32)
        if query.shape[1] != self.dimension:
            raise ValueError(
                f"Query embedding has dimension {query.shape[1]}, index has {self.dimension}"
            )
        faiss.normalize_L2(query)
        scores, indices = self.index.search(query, min(k, len(self.part_ids)))
        return [
            (self.part_ids[idx], float(score))
            for score, idx in zip(scores[0], indices[0])
            if 0 <= idx < len(self.part_ids)
        ]


class ProductStore:
    """Blocking SQLAlchemy-backed store; async callers run it in a worker thread."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory
        self._index: Optional[_PartIndex] = None
        self._index_lock = threading.Lock()

    def find_by_part_number(self, part_number: str) -> List[ProductRef]:
        """Case-insensitive exact lookup."""
        db = self.session_factory()
        try:
            rows = (
                db.query(Part)
                .filter(func.lower(Part.part_number) == part_number.strip().lower())
                .all()
            )
            return [to_product_ref(row) for row in rows]
        finally:
            db.close()

    def search_text(self, query: Optional[str] = None, appliance_type: Optional[str] = None,
                    limit: int = 20) -> List[ProductRef]:
        """Substring search over name, description and part number."""
        db = self.session_factory()
        try:
            stmt = db.query(Part)
            if query:
                pattern = f"%{query.lower()}%"
                stmt = stmt.filter(or_(
                    func.lower(Part.name).like(pattern),
                    func.lower(Part.description).like(pattern),
                    func.lower(Part.part_number).like(pattern),
                ))
            if appliance_type:
                stmt = stmt.filter(func.lower(Part.appliance_type) == appliance_type.lower())
            rows = stmt.order_by(Part.rating.is_(None), Part.rating.desc()).limit(limit).all()
            return [to_product_ref(row) for row in rows]
        finally:
            db.close()

    def search_similar(self, vector: Sequence[float], k: int = 5) -> List[ProductRef]:
        """Top-``k`` parts nearest to ``vector``, each carrying its cosine similarity."""
        index = self._get_index()
        if index is None:
            logger.warning("Similarity index is empty, no embedded parts")
            return []

        hits = index.search(vector, k)
        if not hits:
            return []

        db = self.session_factory()
        try:
            rows = db.query(Part).filter(Part.id.in_([part_id for part_id, _ in hits])).all()
            by_id = {row.id: row for row in rows}
            return [
                to_product_ref(by_id[part_id], similarity=score)
                for part_id, score in hits
                if part_id in by_id
            ]
        finally:
            db.close()

    def check_compatibility(self, part_number: str, model_number: str) -> CompatibilityResult:
        db = self.session_factory()
        try:
            part = (
                db.query(Part)
                .filter(func.lower(Part.part_number) == part_number.strip().lower())
                .first()
            )
            if part is None:
                return CompatibilityResult(
                    is_compatible=False,
                    details=f"Part {part_number} not found in our catalog.",
                    alternative_suggestion="Double-check the part number or try searching by part name.",
                )

            match = (
                db.query(PartCompatibility)
                .filter(PartCompatibility.part_id == part.id)
                .filter(func.lower(PartCompatibility.model_number) == model_number.strip().lower())
                .first()
            )
            if match is not None:
                return CompatibilityResult(
                    is_compatible=True,
                    details=f"This {part.name} is designed for your {model_number} model.",
                )
            return CompatibilityResult(
                is_compatible=False,
                details=f"The {part.name} is not listed as compatible with model {model_number}.",
                alternative_suggestion=f"Would you like me to search for parts that fit your {model_number}?",
            )
        finally:
            db.close()

    # ─── embedding maintenance (offline batch) ───────────────────────────────

    def parts_missing_embeddings(self) -> List[Part]:
        db = self.session_factory()
        try:
            rows = db.query(Part).filter(Part.embedding.is_(None)).all()
            db.expunge_all()
            return rows
        finally:
            db.close()

    def set_embedding(self, part_id: int, embedding: Sequence[float]) -> None:
        db = self.session_factory()
        try:
            part = db.get(Part, part_id)
            if part is None:
                raise ValueError(f"No part with id {part_id}")
            part.embedding = [float(v) for v in embedding]
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        self.invalidate_index()

    def invalidate_index(self) -> None:
        with self._index_lock:
            self._index = None

    def _get_index(self) -> Optional[_PartIndex]:
        with self._index_lock:
            if self._index is None:
                self._index = self._build_index()
            return self._index

    def _build_index(self) -> Optional[_PartIndex]:
        db = self.session_factory()
        try:
            rows = db.query(Part.id, Part.embedding).filter(Part.embedding.isnot(None)).all()
        finally:
            db.close()

        rows = [(part_id, emb) for part_id, emb in rows if emb]
        if not rows:
            return None

        dimension = len(rows[0][1])
        usable = [(part_id, emb) for part_id, emb in rows if len(emb) == dimension]
        if len(usable) < len(rows):
            logger.warning(f"Skipping {len(rows) - len(usable)} parts with mismatched embedding size")

        vectors = np.array([emb for _, emb in usable], dtype=np.float32)
        index = _PartIndex([part_id for part_id, _ in usable], vectors)
        logger.info(f"Built similarity index with {index.index.ntotal} parts, dimension {dimension}")
        return index
