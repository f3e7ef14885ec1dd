from beanie import Document
from pymongo import ASCENDING, IndexModel


class Counter(Document):
    """Named monotonically increasing sequence (e.g. HD derivation index)."""
    name: str
    value: int = 0

    class Settings:
        name = "counters"
        indexes = [IndexModel([("name", ASCENDING)], unique=True)]
