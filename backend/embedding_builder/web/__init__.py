"""HTTP API for embedding-builder."""
