from .connection import SMTPConnection

__all__ = ["SMTPConnection"]
