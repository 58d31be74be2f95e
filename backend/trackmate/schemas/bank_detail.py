"""TrackMate — Company bank detail schemas."""
from pydantic import BaseModel, ConfigDict, Field, field_validator


class BankDetailCreate(BaseModel):
    bank_name: str = Field(..., min_length=1, max_length=255)
    account_name: str = Field(..., min_length=1, max_length=255)
    iban: str = Field(..., min_length=15, max_length=34)
    swift: str | None = Field(default=None, min_length=8, max_length=11)
    currency: str = Field(..., min_length=3, max_length=3)

    @field_validator("iban")
    @classmethod
    def _normalise_iban(cls, value: str) -> str:
        return value.replace(" ", "").upper()


class BankDetailUpdate(BaseModel):
    bank_name: str | None = Field(default=None, min_length=1, max_length=255)
    account_name: str | None = Field(default=None, min_length=1, max_length=255)
    iban: str | None = Field(default=None, min_length=15, max_length=34)
    swift: str | None = Field(default=None, min_length=8, max_length=11)
    currency: str | None = Field(default=None, min_length=3, max_length=3)

    @field_validator("iban")
    @classmethod
    def _normalise_iban(cls, value: str | None) -> str | None:
        return value.replace(" ", "").upper() if value else value


class BankDetailRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    bank_name: str
    account_name: str
    iban: str
    swift: str | None
    currency: str
