"""Tests for the external symbol oracle."""

import decimal

from hintcc import SymbolOracle
from hintcc.semantic.oracle import MISSING


class TestSymbolOracle:
    """Tests for SymbolOracle."""

    def test_declared_names_exist_without_objects(self):
        oracle = SymbolOracle(declared=["vendor.Widget"])
        assert oracle.exists("vendor.Widget")
        assert oracle.resolve("vendor.Widget") is MISSING

    def test_namespace_lookup(self):
        class Local:
            class Inner:
                pass

        ns = {"Local": Local}
        oracle = SymbolOracle()
        assert oracle.resolve("Local.Inner", ns) is Local.Inner
        assert not oracle.exists("Local.Missing", ns)

    def test_builtins(self):
        assert SymbolOracle().resolve("dict") is dict

    def test_imported_modules(self):
        assert SymbolOracle().resolve("decimal.Decimal") is decimal.Decimal

    def test_never_imports(self):
        assert not SymbolOracle().exists("surely_not_a_module_xyz.Thing")

    def test_load_from_dict_skips_disabled(self):
        oracle = SymbolOracle()
        oracle.load_from_dict({"a.B": True, "c.D": False})
        assert oracle.exists("a.B")
        assert not oracle.exists("c.D")

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "symbols.txt"
        path.write_text("# vendor types\nnumpy.ndarray\n\npandas.DataFrame  # frames\nnot-a-name\n",
                        encoding="utf-8")
        oracle = SymbolOracle()
        assert oracle.load_from_file(path) == 2
        assert oracle.exists("pandas.DataFrame")
        assert len(oracle.load_errors) == 1
        assert "not-a-name" in oracle.load_errors[0]
