from typing import Literal

from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read env from container + optionally from files
    model_config = SettingsConfigDict(
        env_file=(".env", ".env.docker"),
        extra="ignore",
        case_sensitive=False,
    )

    # App
    ENVIRONMENT: str = Field(default="dev", validation_alias=AliasChoices("ENVIRONMENT", "environment"))
    APP_NAME: str = Field(default="gst_ledger", validation_alias=AliasChoices("APP_NAME", "app_name"))
    LOG_LEVEL: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level"))

    # Infrastructure
    DATABASE_URL: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/gst_ledger",
        validation_alias=AliasChoices("DATABASE_URL", "database_url"),
    )

    # Collections
    LEDGER_COLLECTION: str = Field(default="gstRecords", validation_alias=AliasChoices("LEDGER_COLLECTION", "ledger_collection"))
    RETURNS_COLLECTION: str = Field(default="gstReturns", validation_alias=AliasChoices("RETURNS_COLLECTION", "returns_collection"))
    INVOICES_COLLECTION: str = Field(default="invoices", validation_alias=AliasChoices("INVOICES_COLLECTION", "invoices_collection"))
    DEALERS_COLLECTION: str = Field(default="dealers", validation_alias=AliasChoices("DEALERS_COLLECTION", "dealers_collection"))

    # Ledger sync / backfill
    BACKFILL_BATCH_SIZE: int = Field(default=5, ge=1, validation_alias=AliasChoices("BACKFILL_BATCH_SIZE", "backfill_batch_size"))
    LEDGER_SYNC_BACKGROUND: bool = Field(
        default=False,
        validation_alias=AliasChoices("LEDGER_SYNC_BACKGROUND", "ledger_sync_background"),
    )

    # Return filing
    RETURN_DUE_DAY: int = Field(default=20, ge=1, le=28, validation_alias=AliasChoices("RETURN_DUE_DAY", "return_due_day"))
    # Field summed into a filed return's net tax. "amount" keeps the
    # historical behaviour (gross value); "tax_amount" sums the tax itself.
    FILING_NET_TAX_FIELD: Literal["amount", "tax_amount"] = Field(
        default="amount",
        validation_alias=AliasChoices("FILING_NET_TAX_FIELD", "filing_net_tax_field"),
    )
    RETURN_LIFECYCLE_GUARD: bool = Field(
        default=False,
        validation_alias=AliasChoices("RETURN_LIFECYCLE_GUARD", "return_lifecycle_guard"),
    )


settings = Settings()
