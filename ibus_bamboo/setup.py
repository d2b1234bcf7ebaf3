#!/usr/bin/env python3
"""
Bamboo preferences window.

Edits the documents in the config directory. The running engine watches
that directory and reloads on its own.
"""
import logging
import signal
import sys

import gi

gi.require_version("Gtk", "3.0")
from gi.repository import Gtk, Gdk

from .config import (CUSTOM_KEYMAP_SECTION, CUSTOM_METHOD, DEFAULT_CHARSET, DEFAULT_METHOD,
                     ConfigStore, KeymapList, MacroTableDrafts, validate)
from .core import BambooCore
from .errors import BambooError
from .keys import KeyChord

LOG = logging.getLogger(__name__)

FLAG_LABELS = [
    ("spell_check", "Enable spell check"),
    ("macro", "Enable Macro"),
    ("capitalize_macro", "Capitalize Macro"),
    ("auto_non_vn_restore", "Auto restore keys with invalid words"),
    ("modern_style", "Use oà, uý (instead of òa, úy)"),
    ("free_marking", "Allow type with more freedom"),
    ("display_underline", "Underline the preedit text"),
]

MODIFIER_KEYS = [
    Gdk.KEY_Shift_L, Gdk.KEY_Shift_R,
    Gdk.KEY_Control_L, Gdk.KEY_Control_R,
    Gdk.KEY_Alt_L, Gdk.KEY_Alt_R,
    Gdk.KEY_Meta_L, Gdk.KEY_Meta_R,
    Gdk.KEY_Super_L, Gdk.KEY_Super_R,
]


def enumerate_choices():
    try:
        core = BambooCore()
    except BambooError as e:
        LOG.warning("bamboo-core unavailable, offering defaults only: %s", e)
        return [DEFAULT_METHOD, CUSTOM_METHOD], [DEFAULT_CHARSET]
    methods = [n for n in core.input_method_names() if n != CUSTOM_METHOD]
    return methods + [CUSTOM_METHOD], core.charset_names()


class KeyCaptureDialog(Gtk.Dialog):
    def __init__(self, parent):
        super().__init__(title="Input Key", transient_for=parent, flags=0)
        self.add_buttons("Cancel", Gtk.ResponseType.CANCEL)

        self.set_default_size(300, 150)
        self.captured_key = None

        box = self.get_content_area()
        box.add(Gtk.Label(label="Press any key combination..."))

        self.connect("key-press-event", self.on_key_press)
        self.show_all()

    def on_key_press(self, widget, event):
        # Ignore standalone modifiers
        if event.keyval in MODIFIER_KEYS:
            return False

        mods = []
        if event.state & Gdk.ModifierType.SHIFT_MASK:
            mods.append("Shift")
        if event.state & Gdk.ModifierType.CONTROL_MASK:
            mods.append("Control")
        if event.state & Gdk.ModifierType.MOD1_MASK:  # Alt
            mods.append("Alt")
        if event.state & Gdk.ModifierType.SUPER_MASK:
            mods.append("Super")

        self.captured_key = "+".join(mods + [Gdk.keyval_name(event.keyval)])
        self.response(Gtk.ResponseType.OK)
        return True


class KeymapEditor(Gtk.Box):
    """Editable Key/Value list with Add and Remove buttons."""

    def __init__(self, key_title, value_title):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=5)
        self.store = Gtk.ListStore(str, str)
        self.tree = Gtk.TreeView(model=self.store)
        self.tree.set_grid_lines(Gtk.TreeViewGridLines.BOTH)

        for column, title in enumerate((key_title, value_title)):
            renderer = Gtk.CellRendererText()
            renderer.set_property("editable", True)
            renderer.connect("edited", self.on_cell_edited, column)
            col = Gtk.TreeViewColumn(title, renderer, text=column)
            col.set_expand(True)
            self.tree.append_column(col)

        scroll = Gtk.ScrolledWindow()
        scroll.set_min_content_height(120)
        scroll.set_policy(Gtk.PolicyType.AUTOMATIC, Gtk.PolicyType.AUTOMATIC)
        scroll.add(self.tree)
        self.pack_start(scroll, True, True, 0)

        hbox = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=5)
        self.pack_start(hbox, False, False, 0)
        btn_add = Gtk.Button(label="Add")
        btn_add.connect("clicked", self.on_add_clicked)
        hbox.pack_start(btn_add, False, False, 0)
        btn_remove = Gtk.Button(label="Remove")
        btn_remove.connect("clicked", self.on_remove_clicked)
        hbox.pack_start(btn_remove, False, False, 0)

    def load(self, keymap):
        self.store.clear()
        for key, value in keymap.pairs():
            self.store.append([key, value])

    def pairs(self):
        return [(row[0].strip(), row[1]) for row in self.store if row[0].strip()]

    def on_cell_edited(self, widget, path, new_text, column):
        self.store[path][column] = new_text

    def on_add_clicked(self, widget):
        self.store.append(["", ""])
        path = Gtk.TreePath(len(self.store) - 1)
        self.tree.set_cursor(path, self.tree.get_column(0), True)

    def on_remove_clicked(self, widget):
        model, iter = self.tree.get_selection().get_selected()
        if iter:
            model.remove(iter)


class SettingsWindow(Gtk.Window):
    def __init__(self, store=None):
        super().__init__(title="Bamboo Settings")
        self.set_border_width(10)
        self.set_default_size(520, 720)
        self.set_position(Gtk.WindowPosition.CENTER)

        self.store = store or ConfigStore()
        self.input_methods, self.charsets = enumerate_choices()
        self.config = self.store.load_config()
        self.macro_drafts = MacroTableDrafts(self.store)
        self.macro_method = None

        main_vbox = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=10)
        self.add(main_vbox)

        # 1. General Settings Frame
        frame_general = Gtk.Frame(label="General Settings")
        main_vbox.pack_start(frame_general, False, False, 0)
        grid = Gtk.Grid(column_spacing=10, row_spacing=5)
        grid.set_border_width(10)
        frame_general.add(grid)

        grid.attach(Gtk.Label(label="Input Method:", xalign=0), 0, 0, 1, 1)
        self.combo_method = Gtk.ComboBoxText()
        for name in self.input_methods:
            self.combo_method.append(name, name)
        self.combo_method.connect("changed", self.on_method_changed)
        grid.attach(self.combo_method, 1, 0, 1, 1)

        grid.attach(Gtk.Label(label="Output Charset:", xalign=0), 0, 1, 1, 1)
        self.combo_charset = Gtk.ComboBoxText()
        for name in self.charsets:
            self.combo_charset.append(name, name)
        grid.attach(self.combo_charset, 1, 1, 1, 1)

        self.flag_checks = {}
        for row, (attr, label) in enumerate(FLAG_LABELS, start=2):
            check = Gtk.CheckButton(label=label)
            self.flag_checks[attr] = check
            grid.attach(check, 0, row, 2, 1)

        # 2. Restore Key Stroke Frame
        frame_restore = Gtk.Frame(label="Restore Key Stroke")
        main_vbox.pack_start(frame_restore, False, False, 0)
        hbox_restore = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=10)
        hbox_restore.set_border_width(10)
        frame_restore.add(hbox_restore)

        self.restore_store = Gtk.ListStore(str)
        self.restore_tree = Gtk.TreeView(model=self.restore_store)
        self.restore_tree.append_column(Gtk.TreeViewColumn("Key", Gtk.CellRendererText(), text=0))
        scroll_restore = Gtk.ScrolledWindow()
        scroll_restore.set_min_content_height(80)
        scroll_restore.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        scroll_restore.add(self.restore_tree)
        hbox_restore.pack_start(scroll_restore, True, True, 0)

        vbox_restore_btns = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=5)
        hbox_restore.pack_start(vbox_restore_btns, False, False, 0)
        btn_add_key = Gtk.Button(label="Add")
        btn_add_key.connect("clicked", self.on_add_key)
        vbox_restore_btns.pack_start(btn_add_key, False, False, 0)
        btn_remove_key = Gtk.Button(label="Remove")
        btn_remove_key.connect("clicked", self.on_remove_key)
        vbox_restore_btns.pack_start(btn_remove_key, False, False, 0)

        # 3. Custom Keymap / Macro notebook
        notebook = Gtk.Notebook()
        main_vbox.pack_start(notebook, True, True, 0)
        self.custom_editor = KeymapEditor("Key", "Value")
        self.custom_editor.set_border_width(10)
        notebook.append_page(self.custom_editor, Gtk.Label(label="Custom Keymap"))
        self.macro_editor = KeymapEditor("Macro", "Expansion")
        self.macro_editor.set_border_width(10)
        self.macro_label = Gtk.Label(label="Macro")
        notebook.append_page(self.macro_editor, self.macro_label)

        # Buttons
        bbox = Gtk.ButtonBox(orientation=Gtk.Orientation.HORIZONTAL)
        bbox.set_layout(Gtk.ButtonBoxStyle.END)
        main_vbox.pack_start(bbox, False, False, 0)

        btn_cancel = Gtk.Button(label="Cancel")
        btn_cancel.connect("clicked", Gtk.main_quit)
        bbox.add(btn_cancel)
        btn_apply = Gtk.Button(label="Apply")
        btn_apply.connect("clicked", self.on_apply)
        bbox.add(btn_apply)
        btn_ok = Gtk.Button(label="OK")
        btn_ok.connect("clicked", self.on_ok)
        bbox.add(btn_ok)

        self.load_config()

    def load_config(self):
        config = self.config
        method = config.input_method if config.input_method in self.input_methods else DEFAULT_METHOD
        charset = config.output_charset if config.output_charset in self.charsets else DEFAULT_CHARSET
        self.combo_charset.set_active_id(charset)
        for attr, check in self.flag_checks.items():
            check.set_active(getattr(config, attr))

        self.restore_store.clear()
        for chord in config.restore_key_stroke:
            self.restore_store.append([str(chord)])

        self.custom_editor.load(self.store.load_custom_keymap())
        # triggers on_method_changed, which loads the macro table
        self.combo_method.set_active_id(method)

    def on_method_changed(self, widget):
        method = self.combo_method.get_active_id()
        if not method or method == self.macro_method:
            return
        if self.macro_method is not None:
            self.macro_drafts.stash(self.macro_method, self.macro_editor.pairs())
        self.macro_method = method
        self.macro_label.set_text(f"Macro ({method})")
        self.macro_editor.load(self.macro_drafts.load(method))

    def save_to_config(self):
        values = {attr: check.get_active() for attr, check in self.flag_checks.items()}
        values["input_method"] = self.combo_method.get_active_id() or DEFAULT_METHOD
        values["output_charset"] = self.combo_charset.get_active_id() or DEFAULT_CHARSET
        values["restore_key_stroke"] = tuple(KeyChord.parse(row[0]) for row in self.restore_store)
        config = validate(self.config.replace(**values), self.input_methods, self.charsets)

        self.store.save_custom_keymap(
            KeymapList.from_pairs(CUSTOM_KEYMAP_SECTION, self.custom_editor.pairs()))
        self.macro_drafts.stash(self.macro_method, self.macro_editor.pairs())
        self.macro_drafts.save()
        # global settings last so the engine reloads with the new tables in place
        self.store.save_config(config)
        self.config = config

    def on_add_key(self, widget):
        dlg = KeyCaptureDialog(self)
        resp = dlg.run()
        if resp == Gtk.ResponseType.OK and dlg.captured_key:
            key = dlg.captured_key
            if all(row[0] != key for row in self.restore_store):
                self.restore_store.append([key])
        dlg.destroy()

    def on_remove_key(self, widget):
        model, iter = self.restore_tree.get_selection().get_selected()
        if iter:
            model.remove(iter)

    def show_error(self, message):
        dlg = Gtk.MessageDialog(transient_for=self, flags=0, message_type=Gtk.MessageType.ERROR,
                                buttons=Gtk.ButtonsType.CLOSE, text="Cannot save settings")
        dlg.format_secondary_text(message)
        dlg.run()
        dlg.destroy()

    def on_apply(self, widget):
        try:
            self.save_to_config()
        except (BambooError, OSError) as e:
            LOG.error("Failed to save settings: %s", e)
            self.show_error(str(e))
            return False
        return True

    def on_ok(self, widget):
        if self.on_apply(widget):
            Gtk.main_quit()


def main():
    logging.basicConfig(level=logging.INFO)
    win = SettingsWindow()
    win.connect("destroy", Gtk.main_quit)
    win.show_all()

    # Handle Ctrl+C
    signal.signal(signal.SIGINT, signal.SIG_DFL)

    Gtk.main()
    return 0


if __name__ == "__main__":
    sys.exit(main())
