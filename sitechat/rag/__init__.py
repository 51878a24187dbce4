"""
RAG (Retrieval Augmented Generation) module for the site chatbot.

This package indexes site content into embedding vectors and retrieves the
most relevant chunks at query time to ground chat responses.

Components:
    - chunker: Strips markup and splits text into word-aligned chunks
    - embedder: OpenAI / Google embedding providers with a sticky fallback chain
    - chunk_store: sqlite table of (source_type, source_id, chunk, embedding) rows
    - retriever: Brute-force cosine similarity search with current-page boost
    - indexer: Chunk + embed + store orchestration per source kind
"""
