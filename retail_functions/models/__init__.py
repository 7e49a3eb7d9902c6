from retail_functions.core.database import Base
from retail_functions.models.entity import StorageTable, TableEntity

__all__ = ["Base", "StorageTable", "TableEntity"]
