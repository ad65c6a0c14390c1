from .folder_storage import FolderStorage

__all__ = ["FolderStorage"]
