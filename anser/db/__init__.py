"""Session, collection and query interfaces, and their implementation over pymongo."""