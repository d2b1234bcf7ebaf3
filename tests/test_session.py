"""Tests for ibus_bamboo.session: the per context key pipeline."""
import pytest

from conftest import (KEY_RETURN, KEY_SHIFT_L, KEY_SPACE, FakeContext, key, named_key,
                      type_keys)
from ibus_bamboo.keys import RELEASE_MASK, SHIFT_MASK, parse_key_list
from ibus_bamboo.session import SessionStatus, is_well_formed


@pytest.fixture
def context():
    return FakeContext(focused=True)


@pytest.fixture
def session(controller, context):
    return controller.create_session(context)


def test_composes_and_commits_on_return(session, context):
    assert all(type_keys(session, "vieetj"))
    assert context.shown == ("việt", 4, True)
    assert session.status is SessionStatus.COMPOSING

    assert not session.process_key_event(named_key(KEY_RETURN, "Return"))
    assert context.output == "việt"
    assert context.shown is None
    assert session.status is SessionStatus.IDLE


def test_space_commit_is_consumed(session, context):
    type_keys(session, "nam")
    assert session.process_key_event(named_key(KEY_SPACE, "space"))
    assert context.committed == ["nam "]
    assert session.last_commit == "nam "


def test_output_accumulates_commits(session, context):
    type_keys(session, "nam")
    session.process_key_event(named_key(KEY_SPACE, "space"))
    type_keys(session, "vieetj")
    session.commit_buffer()
    assert context.committed == ["nam ", "việt"]
    assert session.output == "nam việt"
    assert session.last_commit == "việt"


def test_commit_is_pulled_every_cycle(session, context):
    type_keys(session, "nam")
    session.process_key_event(named_key(KEY_SPACE, "space"))
    type_keys(session, "vi")
    assert context.committed == ["nam "]
    assert context.shown == ("vi", 2, True)


def test_release_events_are_ignored(session, context, core):
    calls = len(core.calls)
    assert not session.process_key_event(key("a", RELEASE_MASK))
    assert len(core.calls) == calls
    assert context.calls == []


def test_shift_alone_is_ignored(session, context, core):
    calls = len(core.calls)
    assert not session.process_key_event(named_key(KEY_SHIFT_L, "Shift_L", SHIFT_MASK))
    assert len(core.calls) == calls
    assert context.calls == []


def test_without_engine_keys_pass_through(controller, core):
    core.fail_methods.add("Telex")
    context = FakeContext(focused=True)
    session = controller.create_session(context)
    assert session.status is SessionStatus.INACTIVE
    assert not session.process_key_event(key("a"))
    session.reset()
    session.commit_buffer()
    assert context.committed == []


def test_restore_chord_is_consumed(controller, session, context, core):
    controller.set_config(controller.config.replace(
        restore_key_stroke=parse_key_list("Shift+space")))
    type_keys(session, "aa")
    assert context.shown[0] == "â"

    assert session.process_key_event(named_key(KEY_SPACE, "space", SHIFT_MASK))
    assert ("set_restore_key_stroke", session.engine.identity) in core.calls
    assert context.committed == []

    session.process_key_event(key("s"))
    assert context.shown[0] == "aas"


def test_underline_requires_preedit_capability(controller):
    context = FakeContext(focused=True, preedit=False)
    session = controller.create_session(context)
    type_keys(session, "a")
    assert context.shown == ("a", 1, False)


def test_underline_follows_config(controller, session, context):
    controller.set_flag("display_underline", False)
    type_keys(session, "a")
    assert context.shown == ("a", 1, False)


def test_malformed_preedit_is_dropped(session, context, core, monkeypatch):
    monkeypatch.setattr(core, "pull_preedit", lambda engine: "vi\udcc3")
    assert session.process_key_event(key("v"))
    assert context.shown is None
    assert session.preedit == ""
    assert context.calls[-2:] == ["flush_preedit", "update_panel"]


def test_reset_discards_preedit(session, context, core):
    type_keys(session, "vie")
    session.reset()
    assert context.shown is None
    assert context.committed == []
    assert core.pull_preedit(session.engine.identity) == ""
    assert session.status is SessionStatus.IDLE


def test_commit_buffer_commits_once(session, context, core):
    type_keys(session, "vieetj")
    session.commit_buffer()
    session.commit_buffer()
    assert context.committed == ["việt"]
    assert context.shown is None
    assert core.pull_preedit(session.engine.identity) == ""


def test_set_engine_replaces_handle(session, core):
    old = session.engine.identity
    session.set_engine()
    assert old in core.released
    assert session.engine.identity != old
    assert core.live_engines() == {session.engine.identity}


def test_engine_receives_options(controller, session, core):
    option = core.engine(session.engine).option
    assert option == {"macro": True, "spell_check": True, "charset": "Unicode",
                      "modern_style": False}


def test_close_releases_engine(session, core):
    identity = session.engine.identity
    session.close()
    assert identity in core.released
    assert session.status is SessionStatus.INACTIVE


@pytest.mark.parametrize("text, expected", [
    ("việt", True),
    ("", True),
    ("\ud800", False),
])
def test_is_well_formed(text, expected):
    assert is_well_formed(text) is expected
