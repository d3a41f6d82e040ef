from .media_store import MediaStore, derive_message_slug, sanitize_filename

__all__ = ["MediaStore", "derive_message_slug", "sanitize_filename"]
