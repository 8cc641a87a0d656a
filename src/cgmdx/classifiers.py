"""
Pluggable classifier capability.

The harness only needs ``fit(features, labels) -> model`` and
``predict(model, features) -> labels``. Any scikit-learn estimator is
adapted with SklearnClassifier; each fit works on a fresh clone so folds
never share a fitted model.
"""

from sklearn.base import clone
from sklearn.ensemble import GradientBoostingClassifier, RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.neighbors import KNeighborsClassifier
from sklearn.tree import DecisionTreeClassifier


class SklearnClassifier:
    def __init__(self, estimator, name=None):
        self.estimator = estimator
        self.name = name or type(estimator).__name__

    def fit(self, features, labels):
        return clone(self.estimator).fit(features, labels)

    def predict(self, model, features):
        return model.predict(features)

    def with_params(self, **params):
        return SklearnClassifier(clone(self.estimator).set_params(**params), name=self.name)

    def __repr__(self):
        return f"SklearnClassifier({self.estimator!r})"


def as_classifier(obj):
    """Return ``obj`` if it follows the fit/predict(model, X) contract, else wrap it."""
    if isinstance(obj, SklearnClassifier):
        return obj
    if hasattr(obj, "get_params") and hasattr(obj, "fit") and hasattr(obj, "predict"):
        return SklearnClassifier(obj)
    if hasattr(obj, "fit") and hasattr(obj, "predict"):
        return obj
    raise TypeError(f"{obj!r} does not provide fit() and predict()")


def default_classifiers(seed: int = 0) -> dict:
    """The five model families compared in the study."""
    return {
        "logistic_regression": SklearnClassifier(
            LogisticRegression(max_iter=1000, class_weight="balanced"), name="logistic_regression"),
        "knn": SklearnClassifier(KNeighborsClassifier(n_neighbors=3), name="knn"),
        "decision_tree": SklearnClassifier(
            DecisionTreeClassifier(max_depth=3, class_weight="balanced", random_state=seed), name="decision_tree"),
        "random_forest": SklearnClassifier(
            RandomForestClassifier(n_estimators=200, class_weight="balanced", random_state=seed), name="random_forest"),
        "boosted_trees": SklearnClassifier(
            GradientBoostingClassifier(random_state=seed), name="boosted_trees"),
    }
