import argparse
import logging
import os
import sys

import gi
gi.require_version('IBus', '1.0')
from gi.repository import IBus, GLib, Gio

from . import __version__
from .controller import ConfigController
from .core import BambooCore
from .errors import BambooError
from .keys import KeyEvent

LOG = logging.getLogger(__name__)

BUS_NAME = "org.freedesktop.IBus.Bamboo"
ENGINE_NAME = "bamboo"
ENGINE_PATH = "/org/freedesktop/IBus/Bamboo/Engine"

INPUT_METHOD_PROP = "bamboo-input-method"
INPUT_METHOD_PREFIX = "bamboo-input-method-"
CHARSET_PROP = "bamboo-charset"
CHARSET_PREFIX = "bamboo-charset-"
SPELL_CHECK_PROP = "bamboo-spell-check"
MACRO_PROP = "bamboo-macro"
PREFERENCES_PROP = "bamboo-preferences"

RELOAD_DELAY_MS = 300


def _state(checked):
    return IBus.PropState.CHECKED if checked else IBus.PropState.UNCHECKED


def launch_preferences():
    pid, _, _, _ = GLib.spawn_async(
        [sys.executable, "-m", "ibus_bamboo.setup"],
        flags=GLib.SpawnFlags.DO_NOT_REAP_CHILD,
    )
    GLib.child_watch_add(GLib.PRIORITY_DEFAULT, pid, _on_preferences_exit)
    return pid


def _on_preferences_exit(pid, status):
    LOG.debug("Preferences window %s exited with status %s", pid, status)
    GLib.spawn_close_pid(pid)


class BambooEngine(IBus.Engine):
    """One IBus engine object per input context, backed by a SessionState."""

    __gtype_name__ = "BambooEngine"

    def __init__(self, controller, **kwargs):
        super().__init__(**kwargs)
        self._controller = controller
        self._caps = 0
        self._focused = False
        self._preedit = None
        self._props, self._sub_props = self._create_properties()
        self._controller.add_listener(self._on_actions_changed)
        self._session = controller.create_session(self)

    # -- session context --

    def commit_string(self, text):
        self.commit_text(IBus.Text.new_from_string(text))

    def reset_preedit(self):
        self._preedit = None

    def set_preedit(self, text, cursor, underline):
        self._preedit = (text, cursor, underline)

    def flush_preedit(self):
        if not self._preedit:
            self.hide_preedit_text()
            return
        text, cursor, underline = self._preedit
        ibus_text = IBus.Text.new_from_string(text)
        if underline:
            ibus_text.append_attribute(
                IBus.AttrType.UNDERLINE, IBus.AttrUnderline.SINGLE, 0, len(text)
            )
        self.update_preedit_text_with_mode(ibus_text, cursor, True, IBus.PreeditFocusMode.CLEAR)

    def update_panel(self):
        # bamboo never shows candidates
        self.hide_lookup_table()
        self.hide_auxiliary_text()

    def supports_preedit(self):
        return bool(self._caps & IBus.Capabilite.PREEDIT_TEXT)

    def is_focused(self):
        return self._focused

    # -- IBus.Engine --

    def do_process_key_event(self, keyval, keycode, state):
        event = KeyEvent(keyval, state, IBus.keyval_name(keyval) or "")
        return self._session.process_key_event(event)

    def do_set_capabilities(self, caps):
        self._caps = caps

    def do_focus_in(self):
        self._focused = True
        self.register_properties(self._props)

    def do_focus_out(self):
        self._focused = False
        self._session.reset()

    def do_reset(self):
        self._session.reset()

    def do_enable(self):
        self._on_actions_changed(self._controller.actions)

    def do_disable(self):
        self._session.commit_buffer()

    def do_property_activate(self, prop_name, state):
        LOG.debug("Property activated: %s = %d", prop_name, state)
        controller = self._controller
        try:
            if prop_name.startswith(INPUT_METHOD_PREFIX):
                if state == IBus.PropState.CHECKED:
                    controller.set_input_method(prop_name[len(INPUT_METHOD_PREFIX):])
            elif prop_name.startswith(CHARSET_PREFIX):
                if state == IBus.PropState.CHECKED:
                    controller.set_output_charset(prop_name[len(CHARSET_PREFIX):])
            elif prop_name == SPELL_CHECK_PROP:
                controller.toggle_spell_check()
            elif prop_name == MACRO_PROP:
                controller.toggle_macro()
            elif prop_name == PREFERENCES_PROP:
                launch_preferences()
        except BambooError as e:
            LOG.warning("Rejected %s: %s", prop_name, e)
        except GLib.Error as e:
            LOG.error("Failed to start preferences: %s", e)

    def do_destroy(self):
        self._controller.remove_listener(self._on_actions_changed)
        self._controller.remove_session(self)
        IBus.Engine.do_destroy(self)

    # -- properties --

    def _create_properties(self):
        controller = self._controller
        actions = controller.actions
        props = IBus.PropList()
        sub_props = {}

        im_menu = IBus.PropList()
        for name in controller.input_methods:
            prop = IBus.Property(
                key=INPUT_METHOD_PREFIX + name,
                label=IBus.Text.new_from_string(name),
                type=IBus.PropType.RADIO,
                state=_state(actions.is_input_method_checked(name)),
            )
            sub_props[prop.get_key()] = prop
            im_menu.append(prop)
        props.append(IBus.Property(
            key=INPUT_METHOD_PROP,
            label=IBus.Text.new_from_string("Input Method"),
            icon="document-edit",
            type=IBus.PropType.MENU,
            sub_props=im_menu,
        ))

        charset_menu = IBus.PropList()
        for name in controller.charsets:
            prop = IBus.Property(
                key=CHARSET_PREFIX + name,
                label=IBus.Text.new_from_string(name),
                type=IBus.PropType.RADIO,
                state=_state(actions.is_charset_checked(name)),
            )
            sub_props[prop.get_key()] = prop
            charset_menu.append(prop)
        props.append(IBus.Property(
            key=CHARSET_PROP,
            label=IBus.Text.new_from_string("Output charset"),
            icon="character-set",
            type=IBus.PropType.MENU,
            sub_props=charset_menu,
        ))

        for key, label, icon, checked in (
                (SPELL_CHECK_PROP, actions.spell_check_label, "tools-check-spelling",
                 actions.spell_check),
                (MACRO_PROP, actions.macro_label, "edit-find", actions.macro)):
            prop = IBus.Property(
                key=key,
                label=IBus.Text.new_from_string(label),
                icon=icon,
                type=IBus.PropType.TOGGLE,
                state=_state(checked),
            )
            sub_props[key] = prop
            props.append(prop)

        props.append(IBus.Property(
            key=PREFERENCES_PROP,
            label=IBus.Text.new_from_string("Preferences"),
            icon="preferences-other",
            type=IBus.PropType.NORMAL,
        ))
        return props, sub_props

    def _on_actions_changed(self, actions):
        for key, prop in self._sub_props.items():
            if key.startswith(INPUT_METHOD_PREFIX):
                checked = actions.is_input_method_checked(key[len(INPUT_METHOD_PREFIX):])
            elif key.startswith(CHARSET_PREFIX):
                checked = actions.is_charset_checked(key[len(CHARSET_PREFIX):])
            elif key == SPELL_CHECK_PROP:
                checked = actions.spell_check
                prop.set_label(IBus.Text.new_from_string(actions.spell_check_label))
            else:
                checked = actions.macro
                prop.set_label(IBus.Text.new_from_string(actions.macro_label))
            prop.set_state(_state(checked))
            if self._focused:
                self.update_property(prop)


class BambooEngineFactory(IBus.Factory):
    __gtype_name__ = "BambooEngineFactory"

    def __init__(self, bus, controller):
        self._bus = bus
        self._controller = controller
        self._engine_count = 0
        super().__init__(object_path=IBus.PATH_FACTORY, connection=bus.get_connection())

    def do_create_engine(self, engine_name):
        if engine_name != ENGINE_NAME:
            LOG.warning("Asked for unknown engine %s", engine_name)
            return None
        self._engine_count += 1
        return BambooEngine(
            self._controller,
            engine_name=engine_name,
            object_path=f"{ENGINE_PATH}/{self._engine_count}",
            connection=self._bus.get_connection(),
        )


class ConfigWatcher:
    """Reloads the controller when the config documents are edited elsewhere."""

    def __init__(self, controller):
        self._controller = controller
        self._pending = 0
        directory = controller.store.directory
        os.makedirs(directory, exist_ok=True)
        self._monitor = Gio.File.new_for_path(directory).monitor_directory(
            Gio.FileMonitorFlags.NONE, None)
        self._monitor.connect("changed", self._on_changed)

    def _on_changed(self, monitor, file, other_file, event_type):
        if not file.get_basename().endswith(".conf"):
            return
        if not self._pending:
            self._pending = GLib.timeout_add(RELOAD_DELAY_MS, self._reload)

    def _reload(self):
        self._pending = 0
        try:
            self._controller.reload_config(only_if_changed=True)
        except BambooError as e:
            LOG.error("Failed to reload configuration: %s", e)
        return False


class BambooIMApp:
    def __init__(self, exec_by_ibus=True):
        IBus.init()
        self._mainloop = GLib.MainLoop()
        self._bus = IBus.Bus()
        if not self._bus.is_connected():
            raise BambooError("Cannot connect to IBus daemon")
        self._bus.connect("disconnected", self._on_bus_disconnected)

        self._controller = ConfigController(BambooCore())
        self._watcher = ConfigWatcher(self._controller)
        self._factory = BambooEngineFactory(self._bus, self._controller)

        if exec_by_ibus:
            self._bus.request_name(BUS_NAME, 0)
        else:
            self._register_component()
        LOG.info("Bamboo engine started")

    def _register_component(self):
        component = IBus.Component.new(
            BUS_NAME,
            "Bamboo Vietnamese Input Method",
            __version__,
            "LGPL-2.1-or-later",
            "ibus-bamboo",
            "",
            "",
            "ibus-bamboo",
        )
        component.add_engine(IBus.EngineDesc.new(
            ENGINE_NAME,
            "Bamboo",
            "Vietnamese input method",
            "vi",
            "LGPL-2.1-or-later",
            "ibus-bamboo",
            "",
            "us",
        ))
        self._bus.register_component(component)

    def run(self):
        self._mainloop.run()

    def quit(self):
        self._mainloop.quit()
        self._controller.close()

    def _on_bus_disconnected(self, bus):
        LOG.info("IBus connection closed")
        self.quit()


def print_xml():
    print(f'''<?xml version="1.0" encoding="utf-8"?>
<component>
    <name>{BUS_NAME}</name>
    <description>Bamboo Vietnamese Input Method</description>
    <exec>{sys.executable} -m ibus_bamboo.engine --ibus</exec>
    <version>{__version__}</version>
    <license>LGPL-2.1-or-later</license>
    <textdomain>ibus-bamboo</textdomain>
    <engines>
        <engine>
            <name>{ENGINE_NAME}</name>
            <language>vi</language>
            <license>LGPL-2.1-or-later</license>
            <layout>us</layout>
            <longname>Bamboo</longname>
            <description>Vietnamese input method</description>
            <rank>50</rank>
            <symbol>VI</symbol>
        </engine>
    </engines>
</component>''')


def main():
    parser = argparse.ArgumentParser(description="Bamboo IBus engine")
    parser.add_argument("--ibus", "-i", action="store_true", help="started by the IBus daemon")
    parser.add_argument("--xml", "-x", action="store_true", help="print the component XML")
    parser.add_argument("--debug", "-d", action="store_true", help="enable debug logging")
    args = parser.parse_args()

    if args.xml:
        print_xml()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    log_path = os.environ.get("IBUS_BAMBOO_LOG_FILE")
    if log_path:
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logging.getLogger().addHandler(file_handler)

    try:
        app = BambooIMApp(exec_by_ibus=args.ibus)
    except BambooError as e:
        LOG.error("%s", e)
        return 1

    try:
        app.run()
    except KeyboardInterrupt:
        app.quit()
    return 0


if __name__ == "__main__":
    sys.exit(main())
