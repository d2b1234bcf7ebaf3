import logging
import os

from .errors import DictionaryNotFound
from .handle import ForeignHandle

LOG = logging.getLogger(__name__)

DICTIONARY_ENV = "IBUS_BAMBOO_DICTIONARY"
DICTIONARY_PATH = os.path.join("bamboo", "vietnamese.cm.dict")
PKG_DATA_DIRS = ("ibus-bamboo", "fcitx5")


def find_dictionary():
    path = os.environ.get(DICTIONARY_ENV)
    if path:
        return path
    from gi.repository import GLib

    data_dirs = [GLib.get_user_data_dir()] + list(GLib.get_system_data_dirs())
    for data_dir in data_dirs:
        for pkg in PKG_DATA_DIRS:
            candidate = os.path.join(data_dir, pkg, DICTIONARY_PATH)
            if os.path.exists(candidate):
                return candidate
    raise DictionaryNotFound(f"Failed to find {DICTIONARY_PATH}")


class ResourceRegistry:
    """Process wide handles shared by every session's engine.

    The dictionary is loaded once. Each input method has its own compiled
    macro table which is replaced as a whole whenever that method's macro
    document changes.
    """

    def __init__(self, core):
        self._core = core
        self._dictionary = ForeignHandle(core.delete_object)
        self._macro_tables = {}

    @property
    def dictionary(self):
        return self._dictionary

    def load_dictionary(self, path=None):
        path = path or find_dictionary()
        try:
            fd = os.open(path, os.O_RDONLY)
        except OSError as e:
            raise DictionaryNotFound(f"Failed to load dictionary {path}: {e}") from e
        # NewDictionary takes ownership of fd once it is called
        try:
            identity = self._core.new_dictionary(fd)
        except BaseException:
            os.close(fd)
            raise
        self._dictionary.set(identity)
        if not self._dictionary:
            raise DictionaryNotFound(f"Failed to load dictionary {path}")
        LOG.debug("Loaded dictionary from %s", path)

    def macro_table(self, method_name):
        return self._macro_tables.get(method_name)

    def reload(self, macro_tables):
        """Recompile every table in ``macro_tables`` (method name -> KeymapList)."""
        for method_name, table in macro_tables.items():
            self.reload_one(method_name, table)

    def reload_one(self, method_name, table):
        handle = self._macro_tables.get(method_name)
        if handle is None:
            handle = self._macro_tables[method_name] = ForeignHandle(self._core.delete_object)
        handle.set(self._core.new_macro_table(table.pairs()))
        if not handle:
            LOG.warning("bamboo-core failed to compile macro table for %s", method_name)

    def close(self):
        for handle in self._macro_tables.values():
            handle.clear()
        self._macro_tables.clear()
        self._dictionary.clear()
