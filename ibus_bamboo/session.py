"""
Per input context state driving one bamboo-core engine instance.

The session talks to the host through a small context object (the IBus
engine in production):

    commit_string(text)
    reset_preedit()
    set_preedit(text, cursor, underline)
    flush_preedit()
    update_panel()
    supports_preedit()
    is_focused()
"""
import enum
import logging

from .builder import build_engine
from .core import EngineOption
from .handle import ForeignHandle
from .keys import check_key_list

LOG = logging.getLogger(__name__)


class SessionStatus(enum.Enum):
    INACTIVE = "inactive"
    IDLE = "idle"
    COMPOSING = "composing"


def is_well_formed(text):
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class SessionState:
    def __init__(self, owner, context):
        self._owner = owner
        self.context = context
        self._engine = ForeignHandle(owner.core.delete_object)
        self.preedit = ""
        self.last_commit = ""
        self.output = ""
        self.set_engine()

    @property
    def engine(self):
        return self._engine

    @property
    def status(self):
        if not self._engine:
            return SessionStatus.INACTIVE
        if self.preedit:
            return SessionStatus.COMPOSING
        return SessionStatus.IDLE

    def set_engine(self):
        owner = self._owner
        config = owner.config
        self._engine.clear()
        built = build_engine(
            owner.core,
            config.input_method,
            owner.custom_keymap,
            owner.resources.dictionary,
            owner.resources.macro_table(config.input_method),
        )
        self._engine = ForeignHandle.move(built)
        self.preedit = ""
        if not self._engine:
            LOG.warning("Session %r has no engine, keys pass through", self.context)
        self.set_option()

    def set_option(self):
        if not self._engine:
            return
        option = EngineOption.from_config(self._owner.config)
        self._owner.core.set_option(self._engine.identity, option)

    def process_key_event(self, event):
        """Feed one key press to the engine; returns True if it was consumed."""
        if not self._engine:
            return False
        if event.is_release:
            return False
        if event.is_shift:
            return False

        core = self._owner.core
        engine = self._engine.identity
        if check_key_list(event, self._owner.config.restore_key_stroke):
            core.set_restore_key_stroke(engine)
            return True

        consumed = core.process_key_event(engine, event.keyval, event.state)

        # The engine may commit as a side effect of any key
        self._commit(core.pull_commit(engine))

        self.context.reset_preedit()
        self.preedit = core.pull_preedit(engine)
        if self.preedit:
            if is_well_formed(self.preedit):
                underline = (self.context.supports_preedit()
                             and self._owner.config.display_underline)
                self.context.set_preedit(self.preedit, len(self.preedit), underline)
            else:
                LOG.debug("Dropping malformed preedit %r", self.preedit)
                self.preedit = ""
        self.context.flush_preedit()
        self.context.update_panel()
        return consumed

    def reset(self):
        self.context.reset_preedit()
        if self._engine:
            self._owner.core.reset_engine(self._engine.identity)
        self.preedit = ""
        self.context.update_panel()
        self.context.flush_preedit()

    def commit_buffer(self):
        self.context.reset_preedit()
        if self._engine:
            core = self._owner.core
            core.commit_preedit(self._engine.identity)
            self._commit(core.pull_commit(self._engine.identity))
        self.preedit = ""
        self.context.update_panel()
        self.context.flush_preedit()

    def close(self):
        self._engine.clear()

    def _commit(self, text):
        if not text:
            return
        self.last_commit = text
        self.output += text
        self.context.commit_string(text)
