import pytest

from wasabi.executor import Task
from wasabi.gui import global_vram, set_global_vram
from wasabi.input import (
    GLOBAL_INPUT_MANAGER,
    MOUSE_BUTTON_C,
    MOUSE_BUTTON_L,
    MOUSE_BUTTON_R,
    InputManager,
    MouseButtonState,
    MouseEvent,
    PointerPosition,
    input_task,
)
from wasabi.uefi import VramBufferInfo


@pytest.fixture
def global_state():
    previous_vram = global_vram()
    previous_state = GLOBAL_INPUT_MANAGER.current_mouse_state()
    while GLOBAL_INPUT_MANAGER.pop_mouse_event() is not None:
        pass
    yield
    while GLOBAL_INPUT_MANAGER.pop_mouse_event() is not None:
        pass
    GLOBAL_INPUT_MANAGER.set_current_mouse_state(previous_state)
    set_global_vram(previous_vram)


def test_from_lrc_sets_matching_bits():
    assert MouseButtonState.from_lrc(True, False, False).bits == MOUSE_BUTTON_L
    assert MouseButtonState.from_lrc(False, True, False).bits == MOUSE_BUTTON_R
    assert MouseButtonState.from_lrc(False, False, True).bits == MOUSE_BUTTON_C


def test_button_properties_round_trip():
    for l in (False, True):
        for r in (False, True):
            for c in (False, True):
                state = MouseButtonState.from_lrc(l, r, c)
                assert (state.left, state.right, state.center) == (l, r, c)


def test_default_event_is_at_origin_without_buttons():
    e = MouseEvent()
    assert e.position == PointerPosition(0, 0)
    assert e.button.bits == 0


def test_events_pop_in_push_order():
    manager = InputManager()
    first = MouseEvent(position=PointerPosition(1, 2))
    second = MouseEvent(position=PointerPosition(3, 4))
    manager.push_mouse_event(first)
    manager.push_mouse_event(second)
    assert manager.pop_mouse_event() == first
    assert manager.pop_mouse_event() == second
    assert manager.pop_mouse_event() is None


def test_current_state_starts_released_and_updates():
    manager = InputManager()
    assert manager.current_mouse_state() == MouseEvent()
    e = MouseEvent(MouseButtonState.from_lrc(True, True, False), PointerPosition(5, 6))
    manager.set_current_mouse_state(e)
    assert manager.current_mouse_state() == e


def test_input_task_applies_event_and_marks_pointer(global_state):
    vram = VramBufferInfo(16, 16)
    set_global_vram(vram)
    e = MouseEvent(MouseButtonState.from_lrc(True, False, False), PointerPosition(3, 4))
    GLOBAL_INPUT_MANAGER.push_mouse_event(e)
    task = Task(input_task())
    assert task.poll() is False
    assert GLOBAL_INPUT_MANAGER.current_mouse_state() == e
    assert vram.pixel_at(3, 4) == 0x00FF00
    assert GLOBAL_INPUT_MANAGER.pop_mouse_event() is None


def test_input_task_accepts_offscreen_event(global_state):
    set_global_vram(VramBufferInfo(4, 4))
    e = MouseEvent(position=PointerPosition(100, 100))
    GLOBAL_INPUT_MANAGER.push_mouse_event(e)
    task = Task(input_task())
    assert task.poll() is False
    assert GLOBAL_INPUT_MANAGER.current_mouse_state() == e