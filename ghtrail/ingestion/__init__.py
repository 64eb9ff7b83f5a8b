"""Activity ingestion pipeline and its structured run logging."""
