import logging

from .config import CUSTOM_METHOD
from .handle import ForeignHandle

LOG = logging.getLogger(__name__)


def build_engine(core, method_name, custom_keymap, dictionary, macro_table):
    """Create a configured bamboo engine instance.

    ``dictionary`` and ``macro_table`` are the handles of the resource
    registry; ``macro_table`` must belong to ``method_name``. Returns an
    empty handle when the library refuses to build the engine.
    """
    handle = ForeignHandle(core.delete_object)
    if not dictionary or not macro_table:
        LOG.warning("Cannot build %s engine: shared resources are not loaded", method_name)
        return handle

    if method_name == CUSTOM_METHOD:
        pairs = custom_keymap.pairs()
        LOG.debug("Building custom engine with %d key mappings", len(pairs))
        handle.set(core.new_custom_engine(pairs, dictionary.identity, macro_table.identity))
    else:
        handle.set(core.new_engine(method_name, dictionary.identity, macro_table.identity))

    if not handle:
        LOG.warning("bamboo-core failed to build engine for %s", method_name)
    return handle
