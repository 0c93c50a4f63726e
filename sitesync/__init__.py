"""Static site deployment synchronizer for S3 and CloudFront."""

__version__ = "0.1.0"
