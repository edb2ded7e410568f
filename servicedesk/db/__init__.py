from servicedesk.db.base import Base

__all__ = ["Base"]
