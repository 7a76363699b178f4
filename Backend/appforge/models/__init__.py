from .app_document import AppDocument

__all__ = ["AppDocument"]
