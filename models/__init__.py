"""
Persistence layer: the global DBStorage singleton.
The app factory calls storage.configure(...) and storage.reload().
"""
from models.db_storage import DBStorage

storage = DBStorage()
