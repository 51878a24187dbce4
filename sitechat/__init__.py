"""Site chatbot: content indexing, similarity search and chat orchestration."""
