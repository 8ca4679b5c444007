"""Example 02: Custom default values

Demonstrates overriding the zero value of a type with a named constant.

This example shows:
- Parsing TypeSpec=Replacement specifiers with parse_default_specs()
- An override for a named enum type
- An override for a basic kind (int)
- Positional calls are never touched
"""

import tempfile
from pathlib import Path

from fillfields.config import FillConfig
from fillfields.cst.defaults import parse_default_specs
from fillfields.cst.index import load_project, resolve_target_types
from fillfields.cst.transform import format_path

SOURCE = '''\
from dataclasses import dataclass
from enum import IntEnum


class Status(IntEnum):
    UNKNOWN = 0
    READY = 1


@dataclass
class Job:
    name: str
    status: Status
    retries: int


FIRST = Job(name="build")
SECOND = Job("test", Status.READY, 3)
'''


def main() -> None:
    """Fill Job.status with Status.UNKNOWN and ints with -1."""
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp).resolve()
        (root / "jobs.py").write_text(SOURCE)

        overrides = parse_default_specs(["jobs.Status=Status.UNKNOWN", "int=-1"])
        assert overrides == {"jobs.Status": "Status.UNKNOWN", "int": "-1"}

        index = load_project(root)
        config = FillConfig(
            target_types=resolve_target_types(["jobs.Job"], index),
            custom_defaults=overrides,
            formatter="none",
            workers=1,
        )
        code = format_path(root / "jobs.py", index, config).output.decode()

        assert 'FIRST = Job(name="build", status=Status.UNKNOWN, retries=-1)' in code
        assert 'SECOND = Job("test", Status.READY, 3)' in code
        print(code)

    print("✓ Custom defaults applied")


if __name__ == "__main__":
    main()
