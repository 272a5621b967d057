"""
Offline batch: embed every part that has no embedding yet.

    python -m partassist.storage.embed_parts
"""
import sys

from partassist.core.errors import ProviderError
from partassist.llm.embeddings import EmbeddingClient
from partassist.storage.db import init_db
from partassist.storage.db_models import Part
from partassist.storage.product_store import ProductStore
from partassist.utils.logger import get_logger

logger = get_logger(__name__)


def part_text(part: Part) -> str:
    return f"{part.name}. {part.description or ''}. {part.category or ''}. {part.appliance_type or ''}"


def embed_missing_parts(store: ProductStore, embedder: EmbeddingClient) -> int:
    """
    Embed and store each part missing an embedding.

    Returns:
        Number of parts embedded

    Raises:
        ProviderError: the embedding backend failed; parts done so far are kept
    """
    parts = store.parts_missing_embeddings()
    logger.info(f"Found {len(parts)} parts without embeddings")
    for part in parts:
        store.set_embedding(part.id, embedder.embed(part_text(part)))
        logger.info(f"✅ Embedded: {part.name}")
    logger.info(f"🎉 Embedded {len(parts)} parts")
    return len(parts)


if __name__ == "__main__":
    init_db()
    try:
        embed_missing_parts(ProductStore(), EmbeddingClient())
    except ProviderError as e:
        logger.error(f"❌ Error embedding parts: {e}")
        sys.exit(1)
