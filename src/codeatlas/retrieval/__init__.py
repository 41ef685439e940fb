from .models import RetrievalOptions, RetrievalResult, RetrievedContext
from .retriever import HybridRetriever

__all__ = ["HybridRetriever", "RetrievalOptions", "RetrievalResult", "RetrievedContext"]
