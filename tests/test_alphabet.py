"""Tests for the 8-color alphabet and nearest-color classification."""

import numpy as np
import pytest

from colorborder.visual.alphabet import (
    ALPHABET,
    NEUTRAL_BASE,
    bit_groups,
    coarse_index,
    distance,
    find_closest,
    generate_alphabet,
    is_alphabet_color,
    nearest_distance,
    threshold_index,
)


class TestAlphabet:
    def test_shape(self):
        assert ALPHABET.shape == (8, 3)

    def test_extremes(self):
        assert tuple(ALPHABET[0]) == (123, 123, 123)
        assert tuple(ALPHABET[7]) == (143, 143, 143)

    def test_bit_to_channel(self):
        # bit 0 -> red, bit 1 -> green, bit 2 -> blue
        assert tuple(ALPHABET[1]) == (143, 123, 123)
        assert tuple(ALPHABET[2]) == (123, 143, 123)
        assert tuple(ALPHABET[4]) == (123, 123, 143)

    def test_min_pairwise_distance(self):
        dists = [distance(ALPHABET[i], ALPHABET[j])
                 for i in range(8) for j in range(i + 1, 8)]
        assert min(dists) == pytest.approx(20.0)

    def test_read_only(self):
        with pytest.raises(ValueError):
            ALPHABET[0, 0] = 0

    def test_custom_base_offset(self):
        colors = generate_alphabet(base=100, offset=50)
        assert tuple(colors[0]) == (50, 50, 50)
        assert tuple(colors[5]) == (150, 50, 150)


class TestClassification:
    @pytest.mark.parametrize("index", range(8))
    def test_find_closest_exact(self, index):
        assert find_closest(ALPHABET[index]) == index

    def test_find_closest_perturbed(self):
        rng = np.random.RandomState(7)
        for index in range(8):
            sample = ALPHABET[index] + rng.uniform(-4, 4, size=3)
            assert find_closest(sample) == index

    def test_nearest_distance_vectorised(self):
        samples = np.array([[[123, 123, 123], [255, 255, 255]]])
        d = nearest_distance(samples)
        assert d.shape == (1, 2)
        assert d[0, 0] == 0
        assert d[0, 1] > 150

    def test_neutral_gray_within_default_tolerance(self):
        gray = (NEUTRAL_BASE,) * 3
        assert nearest_distance(gray) == pytest.approx(np.sqrt(300))
        assert is_alphabet_color(gray, 20.0)
        assert not is_alphabet_color(gray, 15.0)

    def test_none_is_not_alphabet(self):
        assert not is_alphabet_color(None, 1000.0)

    def test_white_is_not_alphabet(self):
        assert not is_alphabet_color((255, 255, 255), 25.0)


class TestThresholds:
    def test_threshold_index(self):
        assert threshold_index((150, 100, 150), (133, 133, 133)) == 5

    def test_threshold_strictly_greater(self):
        assert threshold_index((133, 133, 133), (133, 133, 133)) == 0

    def test_per_channel_thresholds(self):
        # A dim red channel still reads as set against a lowered threshold.
        assert threshold_index((128, 120, 120), (125, 133, 133)) == 1

    def test_coarse_index(self):
        for index in range(8):
            assert coarse_index(ALPHABET[index]) == index

    def test_bit_groups(self):
        assert bit_groups(0) == ([0, 2, 4, 6], [1, 3, 5, 7])
        assert bit_groups(2) == ([0, 1, 2, 3], [4, 5, 6, 7])
