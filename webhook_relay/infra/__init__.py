"""Infrastructure adapters: logging and the durable job queue."""
