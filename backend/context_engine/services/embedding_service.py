"""Embedding service using Sentence Transformers."""
import os
import threading
from typing import List, Optional

from context_engine.exceptions import EmbeddingError, ServiceUnavailableError
from context_engine.utils.logger import logger

try:
    from sentence_transformers import SentenceTransformer
    SENTENCE_TRANSFORMERS_AVAILABLE = True
except ImportError:
    SENTENCE_TRANSFORMERS_AVAILABLE = False


def _get_model_path() -> Optional[str]:
    """Local model directory from EMBEDDING_MODEL_PATH, if it exists."""
    local_model_path = os.getenv("EMBEDDING_MODEL_PATH")
    if local_model_path and os.path.isdir(local_model_path):
        return local_model_path
    return None


class EmbeddingService:
    """Generates text embeddings; the model is loaded on first use."""

    def __init__(self, model_name: str = "sentence-transformers/all-MiniLM-L6-v2", device: str = "cpu"):
        """
        Initialize embedding service.

        Args:
            model_name: Sentence Transformers model name or path
            device: Torch device for inference

        Raises:
            ServiceUnavailableError: If sentence-transformers is not installed
        """
        if not SENTENCE_TRANSFORMERS_AVAILABLE:
            raise ServiceUnavailableError(
                "sentence-transformers is not available. Install the 'embeddings' extra."
            )
        self.model_name = model_name
        self.device = device
        self._model = None
        self._lock = threading.Lock()

    def _load_model(self):
        if self._model is None:
            with self._lock:
                if self._model is None:
                    model_path = _get_model_path() or self.model_name
                    logger.info(f"Loading embedding model: {model_path}")
                    self._model = SentenceTransformer(model_path, device=self.device)
        return self._model

    def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingError: If encoding fails
        """
        return self.generate_embeddings([text])[0]

    def generate_embeddings(self, texts: List[str], batch_size: int = 64) -> List[List[float]]:
        """
        Embed a batch of texts.

        Raises:
            EmbeddingError: If encoding fails
        """
        if not texts:
            return []
        try:
            model = self._load_model()
            embeddings = model.encode(
                texts,
                batch_size=batch_size,
                show_progress_bar=False,
                convert_to_numpy=True,
                normalize_embeddings=True,
            )
            return embeddings.tolist()
        except Exception as e:
            logger.error(f"Embedding generation failed: {str(e)}", exc_info=True)
            raise EmbeddingError(f"Failed to generate embeddings: {str(e)}")
