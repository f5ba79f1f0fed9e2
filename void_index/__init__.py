"""Local semantic code index daemon backed by LanceDB and Ollama embeddings."""

__version__ = "0.1.0"
