"""
Object storage backends (S3 and local filesystem).
"""

from complyhub.storage.base import ObjectStore, build_object_store, epoch_ms, sanitize_file_name

__all__ = ["ObjectStore", "build_object_store", "epoch_ms", "sanitize_file_name"]
