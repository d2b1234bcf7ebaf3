"""
ctypes binding for the bamboo-core shared library.

The library is the c-shared build of the fcitx5-bamboo Go bridge. Every
object it hands out is an integer handle that must be given back to
``DeleteObject`` exactly once (see ``handle.ForeignHandle``). Strings it
returns are malloc'ed copies owned by the caller.
"""
import ctypes
import ctypes.util
import logging
import os
from pathlib import Path

from .errors import CoreLibraryError

LOG = logging.getLogger(__name__)

LIBRARY_ENV = "IBUS_BAMBOO_CORE_LIB"
LIBRARY_NAMES = ("libbamboo-core.so", "bamboo-core.so", "libfcitx5bamboocore.so")


class EngineOption(ctypes.Structure):
    _fields_ = [
        ("autoNonVnRestore", ctypes.c_bool),
        ("ddFreeStyle", ctypes.c_bool),
        ("macroEnabled", ctypes.c_bool),
        ("autoCapitalizeMacro", ctypes.c_bool),
        ("spellCheckWithDicts", ctypes.c_bool),
        ("outputCharset", ctypes.c_char_p),
        ("modernStyle", ctypes.c_bool),
        ("freeMarking", ctypes.c_bool),
    ]

    @classmethod
    def from_config(cls, config):
        return cls(
            autoNonVnRestore=config.auto_non_vn_restore,
            ddFreeStyle=True,
            macroEnabled=config.macro,
            autoCapitalizeMacro=config.capitalize_macro,
            spellCheckWithDicts=config.spell_check,
            outputCharset=config.output_charset.encode("utf-8"),
            modernStyle=config.modern_style,
            freeMarking=config.free_marking,
        )


_handle = ctypes.c_size_t
_SIGNATURES = {
    "Init": ([], None),
    "GetInputMethodNames": ([], ctypes.c_void_p),
    "GetCharsetNames": ([], ctypes.c_void_p),
    "NewDictionary": ([_handle], _handle),
    "NewMacroTable": ([ctypes.POINTER(ctypes.c_char_p)], _handle),
    "NewEngine": ([ctypes.c_char_p, _handle, _handle], _handle),
    "NewCustomEngine": ([ctypes.POINTER(ctypes.c_char_p), _handle, _handle], _handle),
    "EngineProcessKeyEvent": ([_handle, ctypes.c_uint32, ctypes.c_uint32], ctypes.c_bool),
    "EnginePullCommit": ([_handle], ctypes.c_void_p),
    "EnginePullPreedit": ([_handle], ctypes.c_void_p),
    "EngineSetOption": ([_handle, ctypes.POINTER(EngineOption)], None),
    "EngineCommitPreedit": ([_handle], None),
    "EngineSetRestoreKeyStroke": ([_handle], None),
    "ResetEngine": ([_handle], None),
    "DeleteObject": ([_handle], None),
}


def find_library():
    path = os.environ.get(LIBRARY_ENV)
    if path:
        if not os.path.exists(path):
            raise CoreLibraryError(f"{LIBRARY_ENV} points at missing file {path}")
        return path

    pkg_dir = Path(__file__).parent
    for name in LIBRARY_NAMES:
        candidate = pkg_dir / name
        if candidate.exists():
            return str(candidate)

    for name in ("bamboo-core", "fcitx5bamboocore"):
        found = ctypes.util.find_library(name)
        if found:
            return found
    raise CoreLibraryError("bamboo-core shared library not found; set " + LIBRARY_ENV)


def _pairs_array(pairs):
    # NULL terminated key, value, key, value, ... list
    flat = []
    for key, value in pairs:
        flat.append(key.encode("utf-8"))
        flat.append(value.encode("utf-8"))
    flat.append(None)
    return (ctypes.c_char_p * len(flat))(*flat)


class BambooCore:
    def __init__(self, path=None):
        path = path or find_library()
        try:
            self._lib = ctypes.CDLL(path)
        except OSError as e:
            raise CoreLibraryError(f"Failed to load {path}: {e}") from e
        self._libc = ctypes.CDLL(ctypes.util.find_library("c"))
        self._libc.free.argtypes = [ctypes.c_void_p]
        self._libc.free.restype = None
        for name, (argtypes, restype) in _SIGNATURES.items():
            try:
                func = getattr(self._lib, name)
            except AttributeError as e:
                raise CoreLibraryError(f"{path} does not export {name}") from e
            func.argtypes = argtypes
            func.restype = restype
        self._lib.Init()
        LOG.debug("Loaded bamboo-core from %s", path)

    def _take_string(self, ptr):
        if not ptr:
            return ""
        try:
            return ctypes.string_at(ptr).decode("utf-8", errors="surrogateescape")
        finally:
            self._libc.free(ptr)

    def _take_string_list(self, ptr):
        if not ptr:
            return []
        array = ctypes.cast(ptr, ctypes.POINTER(ctypes.c_void_p))
        result = []
        i = 0
        while array[i]:
            result.append(self._take_string(array[i]))
            i += 1
        self._libc.free(ptr)
        return result

    def input_method_names(self):
        return self._take_string_list(self._lib.GetInputMethodNames())

    def charset_names(self):
        return self._take_string_list(self._lib.GetCharsetNames())

    def new_dictionary(self, fd):
        # the library takes ownership of fd
        return self._lib.NewDictionary(fd)

    def new_macro_table(self, pairs):
        return self._lib.NewMacroTable(_pairs_array(pairs))

    def new_engine(self, name, dictionary, macro_table):
        return self._lib.NewEngine(name.encode("utf-8"), dictionary, macro_table)

    def new_custom_engine(self, pairs, dictionary, macro_table):
        return self._lib.NewCustomEngine(_pairs_array(pairs), dictionary, macro_table)

    def process_key_event(self, engine, keyval, state):
        return bool(self._lib.EngineProcessKeyEvent(engine, keyval, state))

    def pull_commit(self, engine):
        return self._take_string(self._lib.EnginePullCommit(engine))

    def pull_preedit(self, engine):
        return self._take_string(self._lib.EnginePullPreedit(engine))

    def set_option(self, engine, option):
        self._lib.EngineSetOption(engine, ctypes.byref(option))

    def commit_preedit(self, engine):
        self._lib.EngineCommitPreedit(engine)

    def set_restore_key_stroke(self, engine):
        self._lib.EngineSetRestoreKeyStroke(engine)

    def reset_engine(self, engine):
        self._lib.ResetEngine(engine)

    def delete_object(self, handle):
        self._lib.DeleteObject(handle)
