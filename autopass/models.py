"""
Request and response models for the autopass HTTP service.
"""

import re
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .keys import PublicKey

HEX_PATTERN = re.compile(r'^(0[xX])?([0-9a-fA-F]{2})*$')


def check_hex(value: str) -> str:
    """Accept even-length hex with an optional 0x prefix."""
    if not HEX_PATTERN.match(value):
        raise ValueError("must be even-length hexadecimal")
    return value


def parse_hex(value: str) -> bytes:
    if value[:2] in ("0x", "0X"):
        value = value[2:]
    return bytes.fromhex(value)


class KeyModel(BaseModel):
    x: str
    y: str

    @field_validator("x", "y")
    @classmethod
    def _coordinate(cls, value: str) -> str:
        if len(parse_hex(check_hex(value))) > 32:
            raise ValueError("coordinate must fit in 32 bytes")
        return value

    def to_public_key(self) -> PublicKey:
        return PublicKey(
            int.from_bytes(parse_hex(self.x), "big"),
            int.from_bytes(parse_hex(self.y), "big"),
        )

    @classmethod
    def from_public_key(cls, key: PublicKey) -> "KeyModel":
        return cls(x=f"0x{key.x:064x}", y=f"0x{key.y:064x}")


class SignedDigest(BaseModel):
    digest: str
    signature: str

    @field_validator("digest", "signature")
    @classmethod
    def _hex(cls, value: str) -> str:
        return check_hex(value)


class VerifyRequest(SignedDigest):
    key: KeyModel


class VerifyResponse(BaseModel):
    valid: bool
    backend: str


class InstallRequest(BaseModel):
    key: KeyModel


class CredentialResponse(BaseModel):
    account: str
    namespace_id: int
    key: Optional[KeyModel] = None


class ValidateSignatureResponse(BaseModel):
    result: str
    valid: bool


class CreatePlanRequest(BaseModel):
    token_in: str
    token_out: str
    amount: int
    interval: int


class CreatePlanResponse(BaseModel):
    plan_id: int


class PlanResponse(BaseModel):
    id: int
    token_in: str
    token_out: str
    amount: int
    interval: int
    last_execution_time: int
    next_execution_time: int
    active: bool


class ExecutePlanRequest(BaseModel):
    endpoint: str
    payload: str = "0x"

    @field_validator("payload")
    @classmethod
    def _hex(cls, value: str) -> str:
        return check_hex(value)


class ExecutePlanResponse(BaseModel):
    plan_id: int
    return_data: str
    last_execution_time: int


class ModuleInfo(BaseModel):
    module_id: str
    address: str
    module_types: List[int]
    capabilities: List[str] = Field(default_factory=list)
