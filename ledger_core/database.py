import logging
from motor.motor_asyncio import AsyncIOMotorClient
from ledger_core.config import settings
from ledger_core.repositories.account import AccountRepository
from ledger_core.repositories.config import ConfigRepository
from ledger_core.repositories.exchange_rate import ExchangeRateRepository
from ledger_core.repositories.journal import JournalRepository
from ledger_core.models.account import Account
from ledger_core.models.accounting import JournalEntry
from ledger_core.models.config import CompanyConfig
from ledger_core.models.currency import ExchangeRate

logger = logging.getLogger(__name__)

class Database:
    client: AsyncIOMotorClient = None

    # Repositories
    accounts: AccountRepository = None
    exchange_rates: ExchangeRateRepository = None
    journals: JournalRepository = None
    config: ConfigRepository = None

    def connect(self):
        """Initialize database connection and repositories."""
        self.client = AsyncIOMotorClient(settings.MONGODB_URL)
        db = self.client[settings.DB_NAME]

        # Initialize repositories with their respective collections and models
        self.accounts = AccountRepository(db.accounts, Account)
        self.exchange_rates = ExchangeRateRepository(db.exchange_rates, ExchangeRate)
        self.journals = JournalRepository(db.journal_entries, JournalEntry)
        self.config = ConfigRepository(db.company_config, CompanyConfig)

        logger.info(f"Connected to MongoDB database {settings.DB_NAME}")

    def close(self):
        """Close database connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

db = Database()
