from dataclasses import dataclass

from app.status import Status, StatusUnknown, UserId


@dataclass
class Config:
    name: str
    status: Status
    owner: UserId
    retries: int


DEFAULT = Config(name="x")
