"""Storage core for generated media: local and S3-compatible backends."""
