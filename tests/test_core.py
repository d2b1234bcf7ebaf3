"""Tests for ibus_bamboo.core.

The library tests only run when IBUS_BAMBOO_CORE_LIB points at a built
bamboo-core shared object.
"""
import ctypes
import os

import pytest

from ibus_bamboo.config import BambooConfig
from ibus_bamboo.core import EngineOption, _pairs_array, find_library
from ibus_bamboo.errors import CoreLibraryError
from ibus_bamboo.keys import SHIFT_MASK

needs_library = pytest.mark.skipif(not os.environ.get("IBUS_BAMBOO_CORE_LIB"),
                                   reason="IBUS_BAMBOO_CORE_LIB is not set")


def test_engine_option_from_config():
    option = EngineOption.from_config(BambooConfig(output_charset="VNI Windows",
                                                   macro=False, modern_style=True))
    assert option.ddFreeStyle
    assert not option.macroEnabled
    assert option.modernStyle
    assert option.spellCheckWithDicts
    assert option.outputCharset == b"VNI Windows"


def test_pairs_array_is_null_terminated():
    array = _pairs_array([("a", "ă"), ("dd", "đ")])
    assert len(array) == 5
    assert array[0] == b"a"
    assert array[1] == "ă".encode("utf-8")
    assert array[4] is None
    assert isinstance(array[0], bytes)
    assert ctypes.sizeof(array) == 5 * ctypes.sizeof(ctypes.c_char_p)


def test_missing_library_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("IBUS_BAMBOO_CORE_LIB", str(tmp_path / "libnothing.so"))
    with pytest.raises(CoreLibraryError):
        find_library()


@needs_library
class TestBambooCore:
    @pytest.fixture
    def core(self):
        from ibus_bamboo.core import BambooCore
        return BambooCore()

    @pytest.fixture
    def engine(self, core):
        from ibus_bamboo.resources import find_dictionary
        fd = os.open(find_dictionary(), os.O_RDONLY)
        dictionary = core.new_dictionary(fd)
        macro_table = core.new_macro_table([])
        engine = core.new_engine("Telex", dictionary, macro_table)
        core.set_option(engine, EngineOption.from_config(BambooConfig()))
        yield engine
        for handle in (engine, macro_table, dictionary):
            core.delete_object(handle)

    def test_enumerates_names(self, core):
        assert "Telex" in core.input_method_names()
        assert "Unicode" in core.charset_names()

    def test_types_a_word(self, core, engine):
        for ch in "vieetj":
            assert core.process_key_event(engine, ord(ch), 0)
        assert core.pull_preedit(engine) == "việt"
        core.commit_preedit(engine)
        assert core.pull_commit(engine) == "việt"
        assert core.pull_preedit(engine) == ""

    def test_shifted_letter(self, core, engine):
        assert core.process_key_event(engine, ord("V"), SHIFT_MASK)
        assert core.pull_preedit(engine) == "V"
        core.reset_engine(engine)
        assert core.pull_preedit(engine) == ""
