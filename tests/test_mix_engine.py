import numpy as np
import pytest

from clipmix.renderers.mix_renderer import MixEngine, pan_gains, required_length
from clipmix.services.timeline import PlacementRecord

KICK = [0.5, 0.5, 0.2, 0.2, 0.1, 0.1, 0.0, 0.0]


def _f32(values):
    return np.asarray(values, dtype=np.float32)


def test_pan_law_boundaries():
    assert pan_gains(0.0) == (1.0, 1.0)
    assert pan_gains(1.0) == (0.0, 1.0)
    assert pan_gains(-1.0) == (1.0, 0.0)
    assert pan_gains(0.5) == (0.5, 1.0)
    assert pan_gains(-0.25) == (1.0, 0.75)


def test_pan_outside_range_saturates():
    assert pan_gains(3.0) == (0.0, 1.0)
    assert pan_gains(-2.5) == (1.0, 0.0)


def test_single_event_reproduces_source(make_cache):
    cache, _ = make_cache({"kick": KICK})
    cache.get_or_load("kick")
    out = MixEngine().mix(cache, {"kick": (PlacementRecord(4, 1.0, 0.0),)})

    assert out.dtype == np.float32
    assert len(out) == 4 + len(KICK)
    assert np.array_equal(out[:4], np.zeros(4, dtype=np.float32))
    assert np.array_equal(out[4:], _f32(KICK))


def test_identical_overlapping_events_sum(make_cache):
    src = [0.25, -0.25, 0.5, -0.5]
    cache, _ = make_cache({"a": src})
    cache.get_or_load("a")
    rec = PlacementRecord(0, 1.0, 0.0)
    out = MixEngine().mix(cache, {"a": (rec, rec)})
    assert np.array_equal(out, 2 * _f32(src))


def test_non_overlapping_events_commute(make_cache):
    cache, _ = make_cache({"a": [0.1, 0.2, 0.3, 0.4], "b": [-0.3, 0.6]})
    cache.get_or_load("a")
    cache.get_or_load("b")
    a = (PlacementRecord(0, 0.7, 0.3), PlacementRecord(10, 1.0, 0.0))
    b = (PlacementRecord(4, 0.5, -0.5),)

    forward = MixEngine().mix(cache, {"a": a, "b": b})
    backward = MixEngine().mix(cache, {"b": b, "a": tuple(reversed(a))})
    assert np.array_equal(forward, backward)


def test_adjacent_placements_do_not_overlap(make_cache):
    cache, _ = make_cache({"blip": [0.1, 0.2, 0.3, 0.4]})
    cache.get_or_load("blip")
    groups = {"blip": (PlacementRecord(0, 1.0, 0.0), PlacementRecord(4, 1.0, 0.0))}

    assert required_length(cache, groups) == 8
    out = MixEngine().mix(cache, groups)
    assert np.array_equal(out, _f32([0.1, 0.2, 0.3, 0.4, 0.1, 0.2, 0.3, 0.4]))


def test_single_frame_source_at_offsets_zero_and_four_gives_length_six(make_cache):
    cache, _ = make_cache({"s": [0.1, 0.2]})
    cache.get_or_load("s")
    out = MixEngine().mix(cache, {"s": (PlacementRecord(0, 1.0, 0.0), PlacementRecord(4, 1.0, 0.0))})
    assert len(out) == 6
    assert np.array_equal(out, _f32([0.1, 0.2, 0.0, 0.0, 0.1, 0.2]))


def test_hard_pan_silences_one_channel(make_cache):
    cache, _ = make_cache({"a": [0.5, 0.5, 0.5, 0.5]})
    cache.get_or_load("a")
    right = MixEngine().mix(cache, {"a": (PlacementRecord(0, 1.0, 1.0),)})
    left = MixEngine().mix(cache, {"a": (PlacementRecord(0, 1.0, -1.0),)})
    assert np.array_equal(right, _f32([0.0, 0.5, 0.0, 0.5]))
    assert np.array_equal(left, _f32([0.5, 0.0, 0.5, 0.0]))


def test_volume_scales_both_channels(make_cache):
    cache, _ = make_cache({"a": [0.5, -0.5]})
    cache.get_or_load("a")
    out = MixEngine().mix(cache, {"a": (PlacementRecord(0, 0.5, 0.0),)})
    assert np.array_equal(out, _f32([0.25, -0.25]))


def test_clipping_applies_once_at_the_end(make_cache):
    cache, _ = make_cache({"loud": [0.8, -0.8, 0.3, -0.3]})
    cache.get_or_load("loud")
    rec = PlacementRecord(0, 1.0, 0.0)
    out = MixEngine().mix(cache, {"loud": (rec, rec)})
    assert np.array_equal(out, _f32([1.0, -1.0, 0.6, -0.6]))


def test_clip_leaves_in_range_values_untouched():
    buf = _f32([1.5, -2.0, 0.25, -1.0, 1.0])
    MixEngine().clip(buf)
    assert np.array_equal(buf, _f32([1.0, -1.0, 0.25, -1.0, 1.0]))


def test_groups_without_loaded_sample_are_skipped(make_cache):
    cache, _ = make_cache({"a": [0.1, 0.1]})
    cache.get_or_load("a")
    groups = {"a": (PlacementRecord(2, 1.0, 0.0),), "ghost": (PlacementRecord(1000, 1.0, 0.0),)}
    assert required_length(cache, groups) == 4
    out = MixEngine().mix(cache, groups)
    assert len(out) == 4


def test_empty_timeline_gives_empty_buffer(make_cache):
    cache, _ = make_cache({})
    out = MixEngine().mix(cache, {})
    assert out.size == 0


def test_accumulate_rejects_misaligned_offset():
    buf = np.zeros(8, dtype=np.float32)
    with pytest.raises(ValueError):
        MixEngine().accumulate(buf, _f32([0.1, 0.1]), PlacementRecord(3, 1.0, 0.0))


def test_accumulate_rejects_placement_past_buffer_end():
    buf = np.zeros(4, dtype=np.float32)
    with pytest.raises(ValueError, match="past buffer length"):
        MixEngine().accumulate(buf, _f32([0.1, 0.1, 0.2, 0.2]), PlacementRecord(2, 1.0, 0.0))
    assert np.array_equal(buf, np.zeros(4, dtype=np.float32))
