from app.repositories.grants import InMemoryAccessGrantsRepository
from app.repositories.identities import InMemoryIdentitiesRepository
from app.repositories.profiles import InMemoryProfilesRepository
from app.repositories.records import InMemoryRecordsRepository

__all__ = [
    "InMemoryAccessGrantsRepository",
    "InMemoryIdentitiesRepository",
    "InMemoryProfilesRepository",
    "InMemoryRecordsRepository",
]
