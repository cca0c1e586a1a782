import pytest

from wasabi.gui import GLOBAL_VRAM, global_vram, global_vram_resolutions, set_global_vram
from wasabi.uefi import VramBufferInfo


@pytest.fixture
def restore_vram():
    previous = global_vram()
    yield
    set_global_vram(previous)


def test_set_global_vram_replaces_buffer(restore_vram):
    vram = VramBufferInfo(32, 24)
    set_global_vram(vram)
    assert global_vram() is vram


def test_resolutions_follow_global_vram(restore_vram):
    set_global_vram(VramBufferInfo(40, 30))
    assert global_vram_resolutions() == (40, 30)
    set_global_vram(VramBufferInfo(8, 2))
    assert global_vram_resolutions() == (8, 2)


def test_null_vram_has_no_pixels(restore_vram):
    set_global_vram(VramBufferInfo.null())
    assert global_vram_resolutions() == (0, 0)
    assert global_vram().pixel_at(0, 0) is None


def test_lock_is_released_after_queries(restore_vram):
    set_global_vram(VramBufferInfo(4, 4))
    global_vram_resolutions()
    with GLOBAL_VRAM.try_lock() as guard:
        assert guard.value.width == 4