"""
Global configuration of the bamboo engine and its propagation to sessions.

Every accepted change runs, in order and before returning:

    1. persist the changed document
    2. recompile the affected macro tables
    3. rebuild engines (or reapply options) of all live sessions
    4. refresh the action state shown in menus
"""
import logging
from dataclasses import dataclass

from .config import (CUSTOM_KEYMAP_SECTION, CUSTOM_METHOD, DEFAULT_CHARSET, DEFAULT_METHOD,
                     FLAG_KEYS, ConfigStore, KeymapList, validate)
from .errors import ConfigError
from .registry import SessionRegistry
from .resources import ResourceRegistry
from .session import SessionState

LOG = logging.getLogger(__name__)

CUSTOM_KEYMAP_PATH = "custom_keymap"
MACRO_PREFIX = "macro/"


@dataclass(frozen=True)
class ActionState:
    input_method: str
    output_charset: str
    spell_check: bool
    macro: bool

    @property
    def spell_check_label(self):
        return "Spell Check Enabled" if self.spell_check else "Spell Check Disabled"

    @property
    def macro_label(self):
        return "Macro Enabled" if self.macro else "Macro Disabled"

    def is_input_method_checked(self, name):
        return name == self.input_method

    def is_charset_checked(self, name):
        return name == self.output_charset


class ConfigController:
    def __init__(self, core, store=None, dictionary_path=None):
        self.core = core
        self.store = store or ConfigStore()
        self.sessions = SessionRegistry()
        self.resources = ResourceRegistry(core)
        self._listeners = []

        names = core.input_method_names()
        if DEFAULT_METHOD not in names:
            raise ConfigError(f"Failed to find required input method {DEFAULT_METHOD}")
        self.input_methods = [n for n in names if n != CUSTOM_METHOD] + [CUSTOM_METHOD]
        LOG.debug("Supported input methods: %s", self.input_methods)
        self.charsets = core.charset_names()

        self.resources.load_dictionary(dictionary_path)

        self.config = self._load_valid_config()
        self.custom_keymap = KeymapList(CUSTOM_KEYMAP_SECTION)
        self.macro_tables = {}
        self.actions = self._action_state()
        self.reload_config()

    # -- sessions --

    def create_session(self, context):
        session = SessionState(self, context)
        self.sessions.register(session)
        return session

    def remove_session(self, context):
        self.sessions.unregister(context)

    def add_listener(self, callback):
        self._listeners.append(callback)

    def remove_listener(self, callback):
        if callback in self._listeners:
            self._listeners.remove(callback)

    # -- loading --

    def _load_valid_config(self):
        config = self.store.load_config()
        try:
            return validate(config, self.input_methods, self.charsets)
        except ConfigError as e:
            LOG.warning("Stored configuration rejected (%s), using defaults", e)
        changes = {}
        if config.input_method not in self.input_methods:
            changes["input_method"] = DEFAULT_METHOD
        if self.charsets and config.output_charset not in self.charsets:
            changes["output_charset"] = DEFAULT_CHARSET
        return config.replace(**changes)

    def reload_config(self, only_if_changed=False):
        config = self._load_valid_config()
        custom_keymap = self.store.load_custom_keymap()
        macro_tables = {name: self.store.load_macro_table(name) for name in self.input_methods}

        if only_if_changed and (config == self.config
                                and custom_keymap == self.custom_keymap
                                and macro_tables == self.macro_tables):
            return False

        LOG.info("Reloading configuration from %s", self.store.directory)
        self.config = config
        self.custom_keymap = custom_keymap
        self.macro_tables = macro_tables
        self.resources.reload(macro_tables)
        self._populate()
        return True

    def _populate(self):
        self.sessions.refresh_engine()
        self.sessions.refresh_option()
        self._update_actions()

    # -- mutations --

    def set_config(self, config):
        validate(config, self.input_methods, self.charsets)
        self.store.save_config(config)
        self.config = config
        self._populate()

    def set_input_method(self, name):
        if name == self.config.input_method:
            return False
        self._apply(self.config.replace(input_method=name), rebuild=True)
        return True

    def set_output_charset(self, name):
        if name == self.config.output_charset:
            return False
        self._apply(self.config.replace(output_charset=name), rebuild=True)
        return True

    def set_flag(self, name, value):
        if name not in FLAG_KEYS:
            raise ConfigError(f"Unknown option {name!r}")
        value = bool(value)
        if getattr(self.config, name) == value:
            return False
        self._apply(self.config.replace(**{name: value}), rebuild=False)
        return True

    def toggle_spell_check(self):
        self.set_flag("spell_check", not self.config.spell_check)

    def toggle_macro(self):
        self.set_flag("macro", not self.config.macro)

    def _apply(self, config, rebuild):
        validate(config, self.input_methods, self.charsets)
        self.store.save_config(config)
        self.config = config
        if rebuild:
            self.sessions.refresh_engine()
        else:
            self.sessions.refresh_option()
        self._update_actions()

    # -- sub configs --

    def get_sub_config(self, path):
        if path == CUSTOM_KEYMAP_PATH:
            return self.custom_keymap
        if path.startswith(MACRO_PREFIX):
            return self.macro_tables.get(path[len(MACRO_PREFIX):])
        return None

    def set_sub_config(self, path, pairs):
        if path == CUSTOM_KEYMAP_PATH:
            keymap = KeymapList.from_pairs(CUSTOM_KEYMAP_SECTION, _as_pairs(pairs))
            self.store.save_custom_keymap(keymap)
            self.custom_keymap = keymap
        elif path.startswith(MACRO_PREFIX):
            method_name = path[len(MACRO_PREFIX):]
            if method_name not in self.macro_tables:
                raise ConfigError(f"No macro table for input method {method_name!r}")
            table = KeymapList.from_pairs(self.macro_tables[method_name].section,
                                          _as_pairs(pairs))
            self.store.save_macro_table(method_name, table)
            self.macro_tables[method_name] = table
            self.resources.reload_one(method_name, table)
        else:
            raise ConfigError(f"Unknown sub config {path!r}")
        self.sessions.refresh_engine()
        self._update_actions()

    def sub_mode(self):
        return self.config.input_method

    # -- actions --

    def _action_state(self):
        return ActionState(
            input_method=self.config.input_method,
            output_charset=self.config.output_charset,
            spell_check=self.config.spell_check,
            macro=self.config.macro,
        )

    def _update_actions(self):
        self.actions = self._action_state()
        for callback in list(self._listeners):
            callback(self.actions)

    def close(self):
        self.sessions.close()
        self.resources.close()


def _as_pairs(pairs):
    if isinstance(pairs, KeymapList):
        return pairs.pairs()
    return [(str(k), str(v)) for k, v in pairs]
