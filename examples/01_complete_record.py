"""Example 01: Completing a dataclass construction

Demonstrates the library API end to end on a throwaway project.

This example shows:
- Loading a project with load_project()
- Resolving a target type from a human specifier
- Completing one file with format_path()
- Zero values for basic, optional and nested record fields
- Importing the module of a nested record the file cannot spell yet
"""

import tempfile
from pathlib import Path

from fillfields.config import FillConfig
from fillfields.cst.index import load_project, resolve_target_types
from fillfields.cst.transform import format_path

MODELS = '''\
from dataclasses import dataclass
from typing import Optional


@dataclass
class Address:
    city: str


@dataclass
class Person:
    name: str
    age: int
    address: Address
    nickname: Optional[str]
'''

USAGE = '''\
from models import Person

ALICE = Person(name="Alice")
'''


def main() -> None:
    """Complete Person(name="Alice") and check the inserted fields."""
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp).resolve()
        (root / "models.py").write_text(MODELS)
        (root / "usage.py").write_text(USAGE)

        index = load_project(root)
        targets = resolve_target_types(["Person"], index)
        config = FillConfig(target_types=targets, formatter="none", workers=1)

        result = format_path(root / "usage.py", index, config)
        assert result.changed
        code = result.output.decode()
        assert 'Person(name="Alice", age=0, address=models.Address(), nickname=None)' in code
        # usage.py had no binding for Address, so its module is imported
        assert "from models import Person\nimport models\n" in code
        print(code)

    print("✓ Person construction completed")


if __name__ == "__main__":
    main()
