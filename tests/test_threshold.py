import numpy as np
import pytest

from local_stats import LocalStats, describe, window_stats
from neighborhood import pad_for_window
from threshold import BLACK, WHITE, bernsen, global_threshold, niblack, sauvola_pietikainen


def uniform_stats(value: float) -> LocalStats:
    return LocalStats(mean=value, min=value, max=value, variance=0.0)


class TestGlobalThreshold:
    def test_boundary_value_is_white(self):
        assert global_threshold(127, 127) == WHITE
        assert global_threshold(126, 127) == BLACK

    def test_monotonic_in_pixel(self):
        for average in [0, 1, 64, 127, 200, 255]:
            decisions = [int(global_threshold(p, average)) for p in range(256)]
            first_white = decisions.index(WHITE) if WHITE in decisions else len(decisions)
            assert all(d == BLACK for d in decisions[:first_white])
            assert all(d == WHITE for d in decisions[first_white:])

    def test_vectorized(self, split_image):
        result = global_threshold(split_image, 127)

        assert result.dtype == np.uint8
        np.testing.assert_array_equal(result, np.array([[BLACK, BLACK, WHITE, WHITE]] * 4))


class TestBernsen:
    def test_mid_range_threshold(self):
        stats = LocalStats(mean=50.0, min=20.0, max=101.0, variance=10.0)

        # threshold 60.5
        assert bernsen(61, stats) == WHITE
        assert bernsen(60, stats) == BLACK

    def test_flat_window_classifies_white(self):
        # threshold equals the pixel itself
        assert bernsen(0, uniform_stats(0.0)) == WHITE
        assert bernsen(200, uniform_stats(200.0)) == WHITE

    def test_low_contrast_window_uses_fallback(self):
        dark = LocalStats(mean=10.0, min=8.0, max=12.0, variance=2.0)
        bright = LocalStats(mean=210.0, min=208.0, max=212.0, variance=2.0)

        assert bernsen(12, dark, contrast_limit=15, fallback=127) == BLACK
        assert bernsen(208, bright, contrast_limit=15, fallback=127) == WHITE

    def test_high_contrast_window_ignores_fallback(self):
        stats = LocalStats(mean=100.0, min=0.0, max=200.0, variance=900.0)

        assert bernsen(100, stats, contrast_limit=15, fallback=255) == WHITE
        assert bernsen(99, stats, contrast_limit=15, fallback=0) == BLACK

    def test_split_image_matches_global_with_contrast_limit(self, split_image):
        n = 2
        average = 127
        field = window_stats(pad_for_window(split_image, n), n, 0, split_image.shape[0])

        result = bernsen(split_image, field, contrast_limit=15, fallback=average)

        np.testing.assert_array_equal(result, global_threshold(split_image, average))

    def test_split_image_plain_formula(self, split_image):
        n = 2
        field = window_stats(pad_for_window(split_image, n), n, 0, split_image.shape[0])

        result = bernsen(split_image, field)

        # right half agrees with the global threshold, flat left windows are white
        np.testing.assert_array_equal(result[:, 2:], WHITE)
        np.testing.assert_array_equal(result[:, :2], WHITE)


class TestNiblack:
    def test_uniform_image_threshold_is_mean(self):
        stats = uniform_stats(100.0)

        assert niblack(100, stats) == WHITE
        assert niblack(99, stats) == BLACK

    def test_deviation_raises_threshold(self):
        stats = LocalStats(mean=100.0, min=80.0, max=120.0, variance=400.0)

        # threshold = 100 + 0.5 * 20 = 110
        assert niblack(110, stats) == WHITE
        assert niblack(109, stats) == BLACK
        assert niblack(109, stats, k=0.0) == WHITE
        assert niblack(90, stats, k=-0.5) == WHITE
        assert niblack(89, stats, k=-0.5) == BLACK


class TestSauvolaPietikainen:
    def test_uniform_image_threshold(self):
        stats = uniform_stats(100.0)

        # threshold = 100 + 1 + 0.5 * (0 - 1) = 100.5
        assert sauvola_pietikainen(100, stats) == BLACK
        assert sauvola_pietikainen(101, stats) == WHITE

    def test_normalized_deviation(self):
        stats = LocalStats(mean=50.0, min=0.0, max=100.0, variance=512.0)

        # threshold = 50 + 1 + 0.5 * (sqrt(512 / 128) - 1) = 51.5
        assert sauvola_pietikainen(52, stats) == WHITE
        assert sauvola_pietikainen(51, stats) == BLACK
        # r = 32: 50 + 1 + 0.5 * (4 - 1) = 52.5
        assert sauvola_pietikainen(52, stats, r=32) == BLACK

    def test_rejects_non_positive_r(self):
        with pytest.raises(ValueError):
            sauvola_pietikainen(10, uniform_stats(10.0), r=0)


@pytest.mark.parametrize(
    "classify",
    [
        lambda p, s: bernsen(p, s),
        lambda p, s: bernsen(p, s, contrast_limit=30, fallback=100),
        lambda p, s: niblack(p, s, 0.2),
        lambda p, s: sauvola_pietikainen(p, s, 0.3, 64),
    ],
)
def test_classifiers_are_pure(classify):
    rng = np.random.default_rng(5)
    for _ in range(50):
        samples = rng.integers(0, 256, size=25)
        stats = describe(samples)
        pixel = int(samples[12])
        first = classify(pixel, stats)
        assert all(classify(pixel, stats) == first for _ in range(3))
        assert int(first) in (BLACK, WHITE)


def test_vectorized_matches_scalar(random_gray):
    n = 3
    field = window_stats(pad_for_window(random_gray, n), n, 0, random_gray.shape[0])
    vector = sauvola_pietikainen(random_gray, field)

    for y in range(random_gray.shape[0]):
        for x in range(random_gray.shape[1]):
            stats = LocalStats(
                mean=field.mean[y, x],
                min=field.min[y, x],
                max=field.max[y, x],
                variance=field.variance[y, x],
            )
            assert vector[y, x] == sauvola_pietikainen(int(random_gray[y, x]), stats)


def test_large_window_variance_keeps_thresholds_defined():
    from local_stats import LocalStatsField, window_variance

    count = 5000 * 5000
    total = np.array([[count // 2 * 255]], dtype=np.int64)
    total_sq = np.array([[count // 2 * 255 * 255]], dtype=np.int64)
    field = LocalStatsField(
        mean=total / count,
        min=np.array([[0.0]]),
        max=np.array([[255.0]]),
        variance=window_variance(total, total_sq, count),
    )

    # threshold = 127.5 + 0.5 * 127.5 = 191.25
    assert niblack(np.array([[255]]), field)[0, 0] == WHITE
    assert niblack(np.array([[191]]), field)[0, 0] == BLACK
    # threshold = 127.5 + 1 + 0.5 * (sqrt(16256.25 / 128) - 1) ~ 133.63
    assert sauvola_pietikainen(np.array([[134]]), field)[0, 0] == WHITE
    assert sauvola_pietikainen(np.array([[133]]), field)[0, 0] == BLACK
