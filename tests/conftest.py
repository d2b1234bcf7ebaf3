"""Shared test fixtures for the ibus_bamboo test suite.

FakeCore stands in for the bamboo-core shared library so the session and
configuration logic can be tested without the native engine or IBus. Its
engines implement just enough Telex to compose a few syllables.
"""
import os
import unicodedata

import pytest

from ibus_bamboo.config import ConfigStore
from ibus_bamboo.controller import ConfigController
from ibus_bamboo.keys import CONTROL_MASK, MOD1_MASK, SUPER_MASK, KeyEvent

KEY_SPACE = 0x20
KEY_BACKSPACE = 0xff08
KEY_RETURN = 0xff0d
KEY_SHIFT_L = 0xffe1

TELEX_DOUBLES = {"aa": "â", "ee": "ê", "oo": "ô", "dd": "đ", "aw": "ă", "ow": "ơ", "uw": "ư"}
TELEX_TONES = {"s": "\u0301", "f": "\u0300", "r": "\u0309", "x": "\u0303", "j": "\u0323"}
VOWELS = "aăâeêioôơuưy"
MARKED_VOWELS = "ăâêôơư"


def compose_telex(keys):
    out = ""
    tone = ""
    for ch in keys:
        pair = out[-1:] + ch
        if pair in TELEX_DOUBLES:
            out = out[:-1] + TELEX_DOUBLES[pair]
        elif ch in TELEX_TONES and any(v in out for v in VOWELS):
            tone = TELEX_TONES[ch]
        else:
            out += ch
    if tone:
        positions = [i for i, c in enumerate(out) if c in MARKED_VOWELS]
        positions = positions or [i for i, c in enumerate(out) if c in VOWELS]
        i = positions[-1]
        out = out[:i + 1] + tone + out[i + 1:]
    return unicodedata.normalize("NFC", out)


class FakeEngine:
    def __init__(self, name, mapping=None):
        self.name = name
        self.mapping = mapping or {}
        self.keys = ""
        self.commit = ""
        self.raw = False
        self.option = None

    @property
    def preedit(self):
        if self.name == "Custom":
            return "".join(self.mapping.get(k, k) for k in self.keys)
        if self.raw:
            return self.keys
        return compose_telex(self.keys)

    def process_key_event(self, keyval, state):
        if state & (CONTROL_MASK | MOD1_MASK | SUPER_MASK):
            self.commit_preedit()
            return False
        if keyval == KEY_BACKSPACE:
            if not self.keys:
                return False
            self.keys = self.keys[:-1]
            return True
        if keyval == KEY_SPACE:
            text = self.preedit
            self.keys = ""
            self.raw = False
            self.commit = text + " "
            return True
        if 0x20 < keyval < 0x7f and chr(keyval).isalpha():
            self.keys += chr(keyval)
            return True
        self.commit_preedit()
        return False

    def commit_preedit(self):
        self.commit = self.preedit
        self.keys = ""
        self.raw = False

    def reset(self):
        self.keys = ""
        self.commit = ""
        self.raw = False


class FakeCore:
    """Implements the BambooCore surface on plain Python objects."""

    def __init__(self, input_methods=("Telex", "VNI", "VIQR"),
                 charsets=("Unicode", "TCVN3 (ABC)", "VNI Windows")):
        self._input_methods = list(input_methods)
        self._charsets = list(charsets)
        self._next = 100
        self.objects = {}
        self.released = []
        self.fail_methods = set()
        self.calls = []

    def _new(self, obj):
        self._next += 1
        self.objects[self._next] = obj
        return self._next

    def live_engines(self):
        return {h for h, o in self.objects.items() if isinstance(o, FakeEngine)}

    def engine(self, handle):
        return self.objects[handle.identity]

    def input_method_names(self):
        return list(self._input_methods)

    def charset_names(self):
        return list(self._charsets)

    def new_dictionary(self, fd):
        os.close(fd)
        return self._new({"kind": "dictionary"})

    def new_macro_table(self, pairs):
        return self._new(dict(pairs))

    def new_engine(self, name, dictionary, macro_table):
        self.calls.append(("new_engine", name, dictionary, macro_table))
        if dictionary not in self.objects or macro_table not in self.objects:
            return 0
        if name in self.fail_methods:
            return 0
        return self._new(FakeEngine(name))

    def new_custom_engine(self, pairs, dictionary, macro_table):
        self.calls.append(("new_custom_engine", list(pairs), dictionary, macro_table))
        if "Custom" in self.fail_methods:
            return 0
        return self._new(FakeEngine("Custom", dict(pairs)))

    def process_key_event(self, engine, keyval, state):
        self.calls.append(("process_key_event", engine, keyval, state))
        return self.objects[engine].process_key_event(keyval, state)

    def pull_commit(self, engine):
        obj = self.objects[engine]
        text, obj.commit = obj.commit, ""
        return text

    def pull_preedit(self, engine):
        return self.objects[engine].preedit

    def set_option(self, engine, option):
        self.calls.append(("set_option", engine))
        self.objects[engine].option = {
            "macro": option.macroEnabled,
            "spell_check": option.spellCheckWithDicts,
            "charset": option.outputCharset.decode("utf-8"),
            "modern_style": option.modernStyle,
        }

    def commit_preedit(self, engine):
        self.objects[engine].commit_preedit()

    def set_restore_key_stroke(self, engine):
        self.calls.append(("set_restore_key_stroke", engine))
        self.objects[engine].raw = True

    def reset_engine(self, engine):
        self.calls.append(("reset_engine", engine))
        self.objects[engine].reset()

    def delete_object(self, handle):
        assert handle in self.objects, f"handle {handle} released twice"
        del self.objects[handle]
        self.released.append(handle)


class FakeContext:
    """Records what a session asks of its host input context."""

    def __init__(self, focused=False, preedit=True):
        self.focused = focused
        self.preedit_capable = preedit
        self.committed = []
        self.pending = None
        self.shown = None
        self.calls = []

    @property
    def output(self):
        return "".join(self.committed)

    def commit_string(self, text):
        self.calls.append("commit_string")
        self.committed.append(text)

    def reset_preedit(self):
        self.calls.append("reset_preedit")
        self.pending = None

    def set_preedit(self, text, cursor, underline):
        self.calls.append("set_preedit")
        self.pending = (text, cursor, underline)

    def flush_preedit(self):
        self.calls.append("flush_preedit")
        self.shown = self.pending

    def update_panel(self):
        self.calls.append("update_panel")

    def supports_preedit(self):
        return self.preedit_capable

    def is_focused(self):
        return self.focused


def key(ch, state=0):
    return KeyEvent(ord(ch), state, ch)


def named_key(keyval, name, state=0):
    return KeyEvent(keyval, state, name)


def type_keys(session, text):
    return [session.process_key_event(key(ch)) for ch in text]


@pytest.fixture
def core():
    return FakeCore()


@pytest.fixture
def store(tmp_path):
    return ConfigStore(str(tmp_path / "ibus-bamboo"))


@pytest.fixture
def dictionary_path(tmp_path):
    path = tmp_path / "vietnamese.cm.dict"
    path.write_text("viet\nnam\n", encoding="utf-8")
    return str(path)


@pytest.fixture
def controller(core, store, dictionary_path):
    ctl = ConfigController(core, store=store, dictionary_path=dictionary_path)
    yield ctl
    ctl.close()
