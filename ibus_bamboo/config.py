"""
Configuration documents for the bamboo engine.

Three kinds of INI documents live under the config directory:

    bamboo.conf                    global settings ([Settings])
    bamboo-custom-keymap.conf      [CustomKeymap/N] Key=... Value=...
    bamboo-macro-<method>.conf     [Macro/N] Key=... Value=...

Missing documents load as defaults. Writes go through a temporary file so a
crash never leaves a half written document behind.
"""
import configparser
import dataclasses
import logging
import os
import tempfile
from dataclasses import dataclass, field

from .errors import ConfigError
from .keys import format_key_list, parse_key_list

LOG = logging.getLogger(__name__)

CUSTOM_METHOD = "Custom"
DEFAULT_METHOD = "Telex"
DEFAULT_CHARSET = "Unicode"

CONFIG_FILE = "bamboo.conf"
CUSTOM_KEYMAP_FILE = "bamboo-custom-keymap.conf"

SETTINGS_SECTION = "Settings"
CUSTOM_KEYMAP_SECTION = "CustomKeymap"
MACRO_SECTION = "Macro"

# attribute name -> key in [Settings]
FLAG_KEYS = {
    "spell_check": "SpellCheck",
    "macro": "Macro",
    "capitalize_macro": "CapitalizeMacro",
    "auto_non_vn_restore": "AutoNonVnRestore",
    "modern_style": "ModernStyle",
    "free_marking": "FreeMarking",
    "display_underline": "DisplayUnderline",
}


def config_dir():
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")
    return os.path.join(base, "ibus-bamboo")


def macro_file(method_name):
    return f"bamboo-macro-{method_name}.conf"


@dataclass(frozen=True)
class BambooConfig:
    input_method: str = DEFAULT_METHOD
    output_charset: str = DEFAULT_CHARSET
    spell_check: bool = True
    macro: bool = True
    capitalize_macro: bool = True
    auto_non_vn_restore: bool = True
    modern_style: bool = False
    free_marking: bool = True
    display_underline: bool = True
    restore_key_stroke: tuple = ()

    def replace(self, **changes):
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class Keymap:
    key: str
    value: str


@dataclass
class KeymapList:
    """Ordered Key/Value pairs stored as numbered sections."""

    section: str
    entries: list = field(default_factory=list)

    def pairs(self):
        return [(e.key, e.value) for e in self.entries]

    @classmethod
    def from_pairs(cls, section, pairs):
        return cls(section, [Keymap(k, v) for k, v in pairs])


def validate(config, input_methods, charsets):
    # Empty lists mean the engine has not been enumerated yet
    if input_methods and config.input_method not in input_methods:
        raise ConfigError(f"Unknown input method {config.input_method!r}")
    if charsets and config.output_charset not in charsets:
        raise ConfigError(f"Unknown output charset {config.output_charset!r}")
    return config


def _new_parser():
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # Preserve case for keys
    return parser


def _read(path):
    parser = _new_parser()
    if not os.path.exists(path):
        return parser
    try:
        with open(path, "r", encoding="utf-8") as f:
            parser.read_file(f)
    except (OSError, UnicodeDecodeError, configparser.Error) as e:
        LOG.warning("Ignoring unreadable config %s: %s", path, e)
        return _new_parser()
    return parser


def _write(parser, path):
    directory = os.path.dirname(path)
    os.makedirs(directory, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            parser.write(f)
        os.replace(tmp, path)
    except BaseException:
        os.unlink(tmp)
        raise


def load_config(path):
    parser = _read(path)
    config = BambooConfig()
    if SETTINGS_SECTION not in parser:
        return config

    section = parser[SETTINGS_SECTION]
    values = {}
    values["input_method"] = section.get("InputMethod", DEFAULT_METHOD)
    values["output_charset"] = section.get("OutputCharset", DEFAULT_CHARSET)
    for attr, key in FLAG_KEYS.items():
        try:
            values[attr] = section.getboolean(key, fallback=getattr(config, attr))
        except ValueError:
            LOG.warning("Ignoring invalid boolean %s=%r", key, section.get(key))
    try:
        values["restore_key_stroke"] = parse_key_list(section.get("RestoreKeyStroke", ""))
    except ValueError as e:
        LOG.warning("Ignoring invalid RestoreKeyStroke: %s", e)
    return config.replace(**values)


def save_config(config, path):
    parser = _new_parser()
    parser[SETTINGS_SECTION] = {}
    section = parser[SETTINGS_SECTION]
    section["InputMethod"] = config.input_method
    section["OutputCharset"] = config.output_charset
    for attr, key in FLAG_KEYS.items():
        # Use lowercase strings for GLib compatibility
        section[key] = "true" if getattr(config, attr) else "false"
    section["RestoreKeyStroke"] = format_key_list(config.restore_key_stroke)
    _write(parser, path)


_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n"}
_UNESCAPES = {"\\": "\\", '"': '"', "n": "\n"}


def _quote(value):
    # configparser strips surrounding whitespace, fcitx quotes values instead
    return '"' + "".join(_ESCAPES.get(ch, ch) for ch in value) + '"'


def _unquote(value):
    if len(value) < 2 or not (value.startswith('"') and value.endswith('"')):
        return value
    out = []
    chars = iter(value[1:-1])
    for ch in chars:
        if ch == "\\":
            ch = next(chars, "\\")
            out.append(_UNESCAPES.get(ch, "\\" + ch))
        else:
            out.append(ch)
    return "".join(out)


def load_keymap(path, section):
    parser = _read(path)
    prefix = section + "/"
    numbered = []
    for name in parser.sections():
        if not name.startswith(prefix):
            continue
        index = name[len(prefix):]
        if not index.isdigit():
            continue
        key = _unquote(parser[name].get("Key", ""))
        if not key:
            continue
        value = _unquote(parser[name].get("Value", ""))
        numbered.append((int(index), Keymap(key, value)))
    numbered.sort(key=lambda item: item[0])
    return KeymapList(section, [entry for _, entry in numbered])


def save_keymap(keymap, path):
    parser = _new_parser()
    for i, entry in enumerate(keymap.entries):
        parser[f"{keymap.section}/{i}"] = {"Key": _quote(entry.key), "Value": _quote(entry.value)}
    _write(parser, path)


class ConfigStore:
    """Reads and writes the documents of one config directory."""

    def __init__(self, directory=None):
        self.directory = directory or config_dir()

    def path(self, name):
        return os.path.join(self.directory, name)

    def load_config(self):
        return load_config(self.path(CONFIG_FILE))

    def save_config(self, config):
        save_config(config, self.path(CONFIG_FILE))

    def load_custom_keymap(self):
        return load_keymap(self.path(CUSTOM_KEYMAP_FILE), CUSTOM_KEYMAP_SECTION)

    def save_custom_keymap(self, keymap):
        save_keymap(keymap, self.path(CUSTOM_KEYMAP_FILE))

    def load_macro_table(self, method_name):
        return load_keymap(self.path(macro_file(method_name)), MACRO_SECTION)

    def save_macro_table(self, method_name, table):
        save_keymap(table, self.path(macro_file(method_name)))


class MacroTableDrafts:
    """Unsaved macro table edits of several input methods.

    Nothing reaches the store until ``save`` is called, so discarding the
    drafts leaves every document untouched.
    """

    def __init__(self, store):
        self.store = store
        self._drafts = {}

    def load(self, method_name):
        if method_name in self._drafts:
            return self._drafts[method_name]
        return self.store.load_macro_table(method_name)

    def stash(self, method_name, pairs):
        self._drafts[method_name] = KeymapList.from_pairs(MACRO_SECTION, pairs)

    def save(self):
        for method_name, table in self._drafts.items():
            self.store.save_macro_table(method_name, table)
        self._drafts.clear()
