"""Shared infrastructure adapters: database, LLM clients and vector store."""
