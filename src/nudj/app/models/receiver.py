"""Receiver models (persisted in config.json)."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nudj.app.models.pairing import PairingData


class Receiver(PairingData):
    """A named, paired device."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    added_at: datetime = Field(alias="addedAt")
    last_used_at: datetime | None = Field(
        default=None,
        alias="lastUsedAt",
        description="Time of the last successful push, None if never used",
    )

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be blank")
        return value

    def to_pairing_data(self) -> PairingData:
        return PairingData(endpoint=self.endpoint, keys=self.keys, vapid=self.vapid)


class ReceiverConfig(BaseModel):
    """Config file structure."""

    receivers: list[Receiver] = Field(default_factory=list)
