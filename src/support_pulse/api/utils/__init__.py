from .logging import sanitize_for_log

__all__ = ["sanitize_for_log"]
