import math

import numpy as np
import pytest

from cgmdx.errors import LabelMismatchError
from cgmdx.evaluation import (
    accuracy, accuracy_p_value, agreement_statistic, confusion, no_information_rate, summary,
)


def test_confusion_counts_and_statistics():
    cm = confusion(predicted=["a", "a", "b", "b"], actual=["a", "b", "b", "b"])

    assert cm.labels == ["a", "b"]
    assert cm.counts.tolist() == [[1, 0], [1, 2]]
    assert accuracy(cm) == 0.75
    assert no_information_rate(cm) == 0.75
    # p_o = .75, p_e = .25*.5 + .75*.5 = .5
    assert agreement_statistic(cm) == pytest.approx(0.5)
    assert cm.to_frame().loc["b", "a"] == 1


def test_perfect_and_chance_agreement():
    perfect = confusion(["x", "y", "y"], ["x", "y", "y"])
    assert agreement_statistic(perfect) == pytest.approx(1.0)

    always_y = confusion(["y", "y", "y", "y"], ["x", "y", "x", "y"])
    assert agreement_statistic(always_y) == pytest.approx(0.0)


def test_kappa_undefined_for_single_class():
    cm = confusion(["x", "x"], ["x", "x"])
    assert accuracy(cm) == 1.0
    assert math.isnan(agreement_statistic(cm))


def test_vocabulary_includes_unpredicted_classes():
    cm = confusion(["a", "a"], ["a", "a"], labels=["a", "b", "c"])
    assert cm.counts.shape == (3, 3)
    assert cm.total == 2


def test_label_outside_vocabulary():
    with pytest.raises(LabelMismatchError):
        confusion(["a", "zzz"], ["a", "b"], labels=["a", "b"])


def test_length_mismatch():
    with pytest.raises(LabelMismatchError):
        confusion(["a"], ["a", "b"])


def test_accuracy_p_value():
    actual = ["a"] * 5 + ["b"] * 5
    cm = confusion(actual, actual)
    assert accuracy_p_value(cm) == pytest.approx(0.5 ** 10)

    s = summary(cm)
    assert s["n"] == 10
    assert s["accuracy"] == 1.0
    assert s["no_information_rate"] == 0.5


def test_empty_inputs():
    cm = confusion([], [], labels=["a", "b"])
    assert np.isnan(accuracy(cm))
    assert np.isnan(no_information_rate(cm))
