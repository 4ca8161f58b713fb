# notifier/transport/schemas.py
from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, field_validator


class AvailablePlayerIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: StrictStr

    @field_validator("name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class NewChallengeIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    communityName: StrictStr
    challengeId: StrictStr | StrictInt
    creatorId: StrictStr

    @field_validator("communityName", "creatorId")
    @classmethod
    def _not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("challengeId")
    @classmethod
    def _stringify_challenge(cls, value: str | int) -> str:
        value = str(value)
        if not value.strip():
            raise ValueError("challengeId must not be empty")
        return value
