import logging
from datetime import date, datetime, time
from typing import List, Optional
from pymongo.errors import DuplicateKeyError, PyMongoError
from ledger_core.repositories.base import BaseRepository
from ledger_core.models.accounting import JournalEntry, SourceType

logger = logging.getLogger(__name__)

class JournalCommitError(Exception):
    """A validated entry could not be written. Nothing was persisted."""

    def __init__(self, message: str, entry_id: str = "", source_document: str = ""):
        super().__init__(message)
        self.entry_id = entry_id
        self.source_document = source_document

class JournalRepository(BaseRepository[JournalEntry]):
    """
    Journal entries are stored as one document holding all their lines, so a
    single insert commits the whole entry or nothing.
    """

    async def get_by_source(self, source_type: SourceType, source_document: str,
                            company_id: Optional[str] = None) -> Optional[JournalEntry]:
        doc = await self.collection.find_one(self._scoped(
            {"source_type": source_type.value, "source_document": source_document}, company_id
        ))
        return self.model_cls.from_mongo(doc) if doc else None

    async def commit(self, entry: JournalEntry, company_id: Optional[str] = None) -> JournalEntry:
        """
        Idempotent on (company_id, source_type, source_document): re-posting the
        same document returns the entry already stored.
        """
        if company_id is not None:
            entry = entry.model_copy(update={"company_id": company_id})
        try:
            stored = await self.create(entry)
        except DuplicateKeyError:
            existing = await self.get_by_source(entry.source_type, entry.source_document, entry.company_id)
            if existing is None:
                raise JournalCommitError(
                    f"Duplicate key for {entry.source_type.value} {entry.source_document} but no entry found",
                    entry.entry_id, entry.source_document,
                )
            logger.info(f"{entry.source_type.value} {entry.source_document} already posted as {existing.entry_id}")
            return existing
        except PyMongoError as e:
            raise JournalCommitError(
                f"Failed to commit journal {entry.entry_id}: {e}", entry.entry_id, entry.source_document
            ) from e

        logger.info(f"Journal {stored.entry_id} committed for {entry.source_type.value} {entry.source_document}")
        return stored

    async def list_posted(self, until: date, company_id: Optional[str] = None) -> List[JournalEntry]:
        """All entries dated on or before `until`, oldest first."""
        return await self.list(
            self._scoped({"entry_date": {"$lte": datetime.combine(until, time())}}, company_id),
            sort=[("entry_date", 1)],
        )
