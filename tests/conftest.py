"""Global fixtures for hintcc tests."""

import pytest

from hintcc import ClassCompiler, ClassSpace, HintsFrontend, SymbolOracle


@pytest.fixture
def space():
    """A fresh class space with a couple of declared external names."""
    return ClassSpace(SymbolOracle(declared=["ext.Money"]))


@pytest.fixture
def unit(space):
    """Compilation unit 'shop' with its own evaluation namespace."""
    return space.unit("shop", {"__name__": "shop"})


@pytest.fixture
def compiler(unit):
    return ClassCompiler(unit)


@pytest.fixture
def frontend(space):
    return HintsFrontend(space)


@pytest.fixture
def compile_th(frontend):
    """Compile declaration source into a unit and return its namespace; fail on diagnostics."""
    def _compile(source, unit_name="shop"):
        result = frontend.process_string(source, unit_name)
        assert result.success, result.diags.report()
        return result.namespace
    return _compile
