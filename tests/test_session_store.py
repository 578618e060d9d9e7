import json

import pytest

from app import session_store as S
from app.activity_logging import ActivityLogger
from app.drawing_store import ProfileStore
from drawing_surface import ToolState


@pytest.fixture(autouse=True)
def _clean_sessions():
    yield
    S.clear_sessions()


@pytest.mark.parametrize("name, initials", [("Maya Lee", "ML"), ("noah", "N"), ("Ana  Sofia  Ruiz", "ASR")])
def test_initials(name, initials):
    assert S.make_initials(name) == initials


def test_sessions_are_independent_contexts():
    a = S.create_session("a@example.com", "Ann")
    b = S.create_session("b@example.com")
    assert a.sid != b.sid
    assert S.get_session(a.sid) is a
    assert b.parent_name == "Parent"
    assert a.controller is not b.controller


def test_avatar_colours_cycle():
    s = S.create_session("a@example.com")
    colors = [s.add_profile(f"Kid {i}", 5).color for i in range(len(S.AVATAR_COLORS) + 1)]
    assert colors[: len(S.AVATAR_COLORS)] == list(S.AVATAR_COLORS)
    assert colors[-1] == S.AVATAR_COLORS[0]


def test_blank_name_is_rejected():
    s = S.create_session("a@example.com")
    with pytest.raises(ValueError):
        s.add_profile("   ", 5)


def test_select_child_attaches_fresh_canvas():
    s = S.create_session("a@example.com")
    kid = s.add_profile("Maya", 6)
    assert s.controller.attached is False
    s.select_child(kid.id)
    assert s.active_child is kid
    first_surface = s.controller.surface
    s.select_child(kid.id)
    assert s.controller.surface is not first_surface
    with pytest.raises(KeyError):
        s.select_child("missing")


def test_select_child_restores_default_tools():
    s = S.create_session("a@example.com")
    maya, noah = s.add_profile("Maya", 6), s.add_profile("Noah", 9)
    s.select_child(maya.id)
    s.controller.select_color("#F56565")
    s.controller.set_brush_width(30)
    s.controller.toggle_eraser()
    s.select_child(noah.id)
    assert s.controller.tool == ToolState()
    assert (s.controller.tool.color, s.controller.tool.brush_width, s.controller.tool.is_eraser) == ("#4299E1", 5, False)


def test_profiles_come_back_for_the_same_parent(tmp_path):
    profiles = ProfileStore(tmp_path)
    first = S.create_session("Parent@Example.com", profile_store=profiles)
    maya = first.add_profile("Maya Lee", 7)
    S.drop_session(first.sid)

    again = S.create_session("  parent@example.com ", profile_store=ProfileStore(tmp_path))
    assert [p.to_dict() for p in again.profiles] == [maya.to_dict()]
    assert again.select_child(maya.id).name == "Maya Lee"
    assert S.create_session("other@example.com", profile_store=profiles).profiles == []


def test_session_without_profile_store_keeps_profiles_in_memory():
    s = S.create_session("a@example.com")
    s.add_profile("Maya", 6)
    assert S.create_session("a@example.com").profiles == []


def test_drop_session_detaches_canvas():
    s = S.create_session("a@example.com")
    s.select_child(s.add_profile("Maya", 6).id)
    assert S.drop_session(s.sid) is s
    assert s.controller.attached is False
    assert s.active_child is None
    assert S.get_session(s.sid) is None
    assert S.drop_session(s.sid) is None


def test_activity_logger_appends_json_lines(tmp_path):
    logger = ActivityLogger(base_dir=tmp_path).for_session("sess_1")
    logger.log("drawing_saved", {"drawing_id": "drw_1"})
    logger.log("canvas_cleared")
    files = list(tmp_path.glob("activity-*.log"))
    assert len(files) == 1
    entries = [json.loads(line) for line in files[0].read_text(encoding="utf-8").splitlines()]
    assert [e["event"] for e in entries] == ["drawing_saved", "canvas_cleared"]
    assert entries[0]["session"] == "sess_1"
    assert entries[0]["drawing_id"] == "drw_1"


def test_concurrent_sessions_of_one_parent_keep_each_others_profiles(tmp_path):
    profiles = ProfileStore(tmp_path)
    a = S.create_session("parent@example.com", profile_store=profiles)
    b = S.create_session("parent@example.com", profile_store=profiles)
    a.add_profile("Maya", 6)
    b.add_profile("Noah", 9)
    names = [p.name for p in S.create_session("parent@example.com", profile_store=profiles).profiles]
    assert names == ["Maya", "Noah"]
