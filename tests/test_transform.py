"""Golden-file tests for the transform driver and the printer."""

import subprocess

import libcst as cst
import pytest

from fillfields.config import FillConfig
from fillfields.cst.core import parse_source
from fillfields.cst.index import load_project
from fillfields.cst.printer import render
from fillfields.cst.transform import format_file, format_path
from fillfields.errors import SerializationError, TreeAdaptationError
from tests.fill_helpers import fill, filled_text, read_golden

# === golden scenarios ===


@pytest.mark.parametrize(
    ("case", "relative", "targets", "overrides", "golden"),
    [
        ("simple", "shop/orders.py", ["shop.models.Customer"], None, "simple"),
        (
            "custom_default",
            "app/config.py",
            ["app.config.Config"],
            {"app.status.Status": "StatusUnknown"},
            "custom_default",
        ),
        (
            "custom_default",
            "app/config.py",
            ["Config"],
            {"app.status.Status": "StatusUnknown", "int": "-1"},
            "custom_default_mixed",
        ),
        ("external_package", "pkg/drawing.py", ["pkg.shapes.Segment"], None, "external_package"),
        ("nested_struct", "people/registry.py", ["people.models.Person"], None, "nested_struct"),
        ("nested_struct", "people/registry.py", [], None, "nested_struct_all"),
        ("unexported", "vault/bank.py", ["vault.models.Account"], None, "unexported"),
        (
            "multiple_types",
            "shapes/scene.py",
            ["shapes.models.Circle", "shapes.models.Square"],
            None,
            "multiple_types",
        ),
    ],
)
def test_golden(project_copy, case, relative, targets, overrides, golden):
    root = project_copy(case)
    text = filled_text(root, relative, *targets, overrides=overrides)
    assert text == read_golden(golden, relative)


def test_second_run_is_a_no_op(project_copy):
    """Running over already completed output changes nothing."""
    root = project_copy("simple")
    first = fill(root, "shop/orders.py", "shop.models.Customer")
    (root / "shop" / "orders.py").write_bytes(first.output)

    second = fill(root, "shop/orders.py", "shop.models.Customer")

    assert first.changed
    assert not second.changed
    assert second.output is None


def test_non_target_file_reports_no_change(project_copy):
    root = project_copy("simple")
    result = fill(root, "shop/orders.py", "shop.models.Address")
    assert not result.changed
    assert result.output is None
    assert result.errors == []


def test_result_path_is_absolute(project_copy):
    root = project_copy("unexported")
    result = fill(root, "vault/bank.py", "Account")
    assert result.path == str(root / "vault" / "bank.py")


def test_existing_module_binding_is_reused(project_copy):
    """No import is added when the file already binds the defining module."""
    root = project_copy("external_package")
    drawing = root / "pkg" / "drawing.py"
    drawing.write_text(
        "from pkg import geo\nfrom pkg.shapes import Segment\n\n"
        'SEGMENT = Segment(label="diagonal")\n'
    )
    text = filled_text(root, "pkg/drawing.py", "Segment")
    assert text == (
        "from pkg import geo\nfrom pkg.shapes import Segment\n\n"
        'SEGMENT = Segment(start=geo.Point(), end=geo.Point(), label="diagonal")\n'
    )


PEOPLE = """
    from dataclasses import dataclass


    @dataclass
    class Address:
        city: str


    @dataclass
    class Person:
        name: str
        address: Address
"""


def test_type_checking_import_is_not_used_at_runtime(make_project):
    """A name imported under TYPE_CHECKING gets a real import instead."""
    root = make_project(
        {
            "pkg/__init__.py": "",
            "pkg/people.py": PEOPLE,
            "pkg/use.py": """
                from typing import TYPE_CHECKING

                from pkg.people import Person

                if TYPE_CHECKING:
                    from pkg.people import Address

                P = Person(name="x")
            """,
        }
    )
    text = filled_text(root, "pkg/use.py", "pkg.people.Person")
    assert text == (
        "from typing import TYPE_CHECKING\n\n"
        "from pkg.people import Person\n"
        "from pkg import people\n\n"
        "if TYPE_CHECKING:\n"
        "    from pkg.people import Address\n\n"
        'P = Person(name="x", address=people.Address())\n'
    )


def test_type_checking_module_import_is_not_reused(make_project):
    root = make_project(
        {
            "pkg/__init__.py": "",
            "pkg/people.py": PEOPLE,
            "pkg/use.py": """
                from typing import TYPE_CHECKING

                from pkg.people import Person

                if TYPE_CHECKING:
                    from pkg import people

                P = Person(name="x")
            """,
        }
    )
    text = filled_text(root, "pkg/use.py", "pkg.people.Person")
    assert text == (
        "from typing import TYPE_CHECKING\n\n"
        "from pkg.people import Person\n"
        "import pkg.people\n\n"
        "if TYPE_CHECKING:\n"
        "    from pkg import people\n\n"
        'P = Person(name="x", address=pkg.people.Address())\n'
    )


def test_plain_subclass_of_record_is_completed(make_project):
    root = make_project(
        {
            "shapes.py": """
                from dataclasses import dataclass
                from typing import NamedTuple


                @dataclass
                class Base:
                    x: int


                class Child(Base):
                    pass


                class Pair(NamedTuple):
                    left: int
                    right: str


                class LabeledPair(Pair):
                    def label(self) -> str:
                        return self.right


                A = Base()
                B = Child()
                C = LabeledPair(right="r")
            """,
        }
    )
    text = filled_text(root, "shapes.py")
    assert text.endswith('A = Base(x=0)\nB = Child(x=0)\nC = LabeledPair(left=0, right="r")\n')


def test_unparseable_file_raises_tree_adaptation_error(make_project):
    root = make_project({"broken.py": "class (:\n"})
    index = load_project(root)
    with pytest.raises(TreeAdaptationError):
        format_path(root / "broken.py", index, FillConfig(formatter="none", workers=1))


def test_serialization_error_leaves_no_output(project_copy, monkeypatch):
    root = project_copy("simple")
    index = load_project(root)

    def fail(*args, **kwargs):
        return subprocess.CompletedProcess(args, 2, stdout="", stderr="error: cannot format")

    monkeypatch.setattr(subprocess, "run", fail)
    with pytest.raises(SerializationError, match="cannot format"):
        format_file(
            index.source_for(root / "shop" / "orders.py"),
            index,
            FillConfig(formatter="ruff", workers=1),
        )


# === printer ===


def test_render_without_formatter_keeps_code():
    module = parse_source("x = Point(x = 0,y=1)  # keep\n")
    assert render(module, "x.py", "none") == b"x = Point(x = 0,y=1)  # keep\n"


def test_render_keeps_original_encoding():
    original = '# -*- coding: latin-1 -*-\nname = "caf\xe9"\n'.encode("latin-1")
    module = cst.parse_module(original)
    assert render(module, "legacy.py", "none") == original


def test_render_reports_missing_formatter(monkeypatch):
    def missing(*args, **kwargs):
        raise FileNotFoundError("no such interpreter")

    monkeypatch.setattr(subprocess, "run", missing)
    with pytest.raises(SerializationError, match="failed to run ruff") as exc_info:
        render(parse_source("x = 1\n"), "x.py", "ruff")
    assert exc_info.value.path == "x.py"


def test_render_with_ruff():
    pytest.importorskip("ruff")
    module = parse_source("x = Point(x = 0,y=1)\n")
    assert render(module, "x.py", "ruff") == b"x = Point(x=0, y=1)\n"
