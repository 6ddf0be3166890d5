# Re-export the main Base class from db.py for counsel request models
# so every table shares one metadata
from db import Base

__all__ = ["Base"]
