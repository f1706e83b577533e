"""
apkmon Schemas - Pydantic models for the upgrade measurement payload

Field aliases are the wire contract consumed downstream:
    {"count": 1,
     "packages": [{"p": "curl", "o": "curl", "v": "8.0.0-r0", "w": "8.1.0-r0"}],
     "os-id": "alpine", "os-version": "3.18.4"}
"""

from dataclasses import dataclass
from typing import Iterable, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


class PayloadError(Exception):
    """Raised when the measurement metadata cannot be built"""


@dataclass(frozen=True)
class OSIdentity:
    id: str = ""
    version_id: str = ""


class UpgradeRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., alias="p")
    origin: str = Field(..., alias="o")
    old_version: str = Field(..., alias="v")
    new_version: str = Field(..., alias="w")


class MeasurementPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    count: int = Field(..., ge=0)
    packages: List[UpgradeRecord] = []
    os_id: str = Field("", alias="os-id")
    os_version: str = Field("", alias="os-version")

    @model_validator(mode="after")
    def check_count(self):
        if self.count != len(self.packages):
            raise ValueError(f"count {self.count} does not match {len(self.packages)} packages")
        return self

    def to_json(self) -> str:
        """Compact JSON with wire field names"""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: str) -> "MeasurementPayload":
        return cls.model_validate_json(data)


def build_payload(records: Iterable[UpgradeRecord], identity: OSIdentity) -> MeasurementPayload:
    records = list(records)
    try:
        return MeasurementPayload(
            count=len(records),
            packages=records,
            os_id=identity.id,
            os_version=identity.version_id,
        )
    except ValidationError as e:
        raise PayloadError(f"invalid measurement payload: {e}") from e


def serialize_payload(records: Iterable[UpgradeRecord], identity: OSIdentity) -> str:
    payload = build_payload(records, identity)
    try:
        return payload.to_json()
    except (ValueError, TypeError) as e:
        raise PayloadError(f"unable to encode measurement payload: {e}") from e
