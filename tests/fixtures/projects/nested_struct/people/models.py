from dataclasses import dataclass
from typing import NamedTuple


class Coordinates(NamedTuple):
    lat: float
    lon: float


@dataclass
class Address:
    city: str
    location: Coordinates
    grid: tuple[int, int]


@dataclass
class Person:
    name: str
    address: Address
