"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Object storage (S3 via boto3)
- staging: Local scratch directory
- video: FFmpeg encoding

These wrappers translate between external formats and our domain models.
"""
