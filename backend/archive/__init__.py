"""OSS Archive: file archive backend over S3-compatible object storage."""
