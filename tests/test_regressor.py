import logging

import numpy as np
import pytest
from sklearn.base import clone
from sklearn.exceptions import NotFittedError
from cartreg import CARTRegressor, Tree


def _step_dataset():
    """Single feature, two plateaus."""
    X = np.array([[1.0], [2.0], [3.0], [4.0]])
    y = np.array([10.0, 10.0, 20.0, 20.0])
    return X, y


def _smooth_dataset(n=200, seed=0):
    rng = np.random.default_rng(seed)
    X = rng.uniform(-2, 2, size=(n, 3))
    y = X[:, 0] ** 2 + np.where(X[:, 1] > 0, 1.0, -1.0) + 0.05 * rng.normal(size=n)
    return X, y


def test_step_function_single_split():
    X, y = _step_dataset()
    regr = CARTRegressor(min_leaf_size=1, min_size_to_split=2).fit(X, y)
    tree = regr.tree_
    assert tree.node_count == 3
    assert tree.root.threshold == 2.5
    leaves = [tree[tree.root.left_child], tree[tree.root.right_child]]
    assert [leaf.mean for leaf in leaves] == [10.0, 20.0]
    assert [leaf.variance for leaf in leaves] == [0.0, 0.0]
    np.testing.assert_array_equal(regr.predict(X), y)
    assert regr.predict([2.4]) == 10.0
    assert regr.predict([2.6]) == 20.0


@pytest.mark.parametrize("value", [-1.5, 0.1, 0.3, 123.456])
@pytest.mark.parametrize("n", [10, 37, 100, 333])
def test_constant_target_is_single_leaf(value, n):
    X, _ = _smooth_dataset(n)
    regr = CARTRegressor().fit(X, np.full(n, value))
    assert regr.get_n_leaves() == 1
    assert regr.get_depth() == 0
    assert regr.tree_.root.split_gain == 0.0
    np.testing.assert_array_equal(regr.predict(X), value)


def test_max_depth_zero_predicts_overall_mean():
    X, y = _smooth_dataset()
    regr = CARTRegressor(max_depth=0).fit(X, y)
    assert regr.tree_.node_count == 1
    rng = np.random.default_rng(5)
    preds = regr.predict(rng.normal(size=(10, 3)))
    np.testing.assert_allclose(preds, y.mean())


def test_singleton_leaf_returns_training_target():
    X = np.arange(12, dtype=float).reshape(-1, 1)
    y = X[:, 0] ** 2
    regr = CARTRegressor().fit(X, y)
    leaves = regr.apply(X)
    singletons = [i for i, leaf in enumerate(leaves) if regr.tree_[leaf].sample_size == 1]
    assert singletons
    for i in singletons:
        assert regr.predict(X[i]) == y[i]


def test_tree_invariants_on_noisy_data():
    X, y = _smooth_dataset()
    regr = CARTRegressor(min_leaf_size=4, max_depth=5, min_impurity_decrease=0.01).fit(X, y)
    assert regr.get_depth() <= 5
    for _, node, _ in regr.tree_.walk():
        assert node.sample_size >= 4
        if not node.is_leaf:
            assert node.split_gain >= 0.01
    assert regr.score(X, y) > 0.8


def test_predictions_preserve_row_order_and_shape():
    X, y = _smooth_dataset()
    regr = CARTRegressor(max_depth=4).fit(X, y)
    preds = regr.predict(X)
    assert preds.shape == y.shape
    assert np.all([regr.predict(x) == p for x, p in zip(X, preds)])
    assert isinstance(regr.predict(X[0]), float)


def test_refit_is_deterministic():
    X, y = _smooth_dataset()
    a = CARTRegressor(min_leaf_size=2).fit(X, y)
    b = CARTRegressor(min_leaf_size=2).fit(X, y)
    assert a.tree_.to_dict() == b.tree_.to_dict()
    # the caller's arrays are not reordered
    X2, y2 = _smooth_dataset()
    np.testing.assert_array_equal(X, X2)
    np.testing.assert_array_equal(y, y2)


def test_fluent_setters_and_params():
    regr = CARTRegressor()
    same = regr.set_min_leaf_size(10).set_max_depth(3).set_min_size_to_split(5)
    same = same.set_min_impurity_decrease(0.1)
    assert same is regr
    params = regr.get_params()
    assert params["min_leaf_size"] == 10
    assert params["max_depth"] == 3
    assert params["min_size_to_split"] == 5
    assert params["min_impurity_decrease"] == 0.1
    assert clone(regr).get_params() == params


def test_not_fitted_raises():
    regr = CARTRegressor()
    with pytest.raises(NotFittedError):
        regr.predict([[1.0]])
    with pytest.raises(ValueError):
        regr.predict([1.0])
    with pytest.raises(NotFittedError):
        regr.export_rules()


@pytest.mark.parametrize("X, y", [
    (np.empty((0, 2)), np.empty(0)),
    (np.empty((3, 0)), np.zeros(3)),
    (np.ones((3, 2)), np.zeros(2)),
    (np.array([[1.0, np.nan], [2.0, 3.0]]), np.zeros(2)),
    (np.ones((3, 2)), np.zeros((3, 2))),
])
def test_fit_rejects_bad_input(X, y):
    with pytest.raises(ValueError):
        CARTRegressor().fit(X, y)


@pytest.mark.parametrize("params", [
    dict(min_leaf_size=0),
    dict(min_size_to_split=0),
    dict(max_depth=-1),
    dict(max_depth=2.5),
    dict(min_impurity_decrease=float("inf")),
    dict(feature_names=["only_one"]),
    dict(verbose=None),
    dict(verbose=-1),
    dict(verbose="2"),
])
def test_fit_rejects_bad_params(params):
    X, y = _smooth_dataset(20)
    with pytest.raises(ValueError):
        CARTRegressor(**params).fit(X, y)


def test_failed_fit_leaves_model_unfitted():
    X, y = _smooth_dataset(30)
    regr = CARTRegressor().fit(X, y)
    with pytest.raises(ValueError):
        regr.fit(X, y[:-1])
    with pytest.raises(NotFittedError):
        regr.predict(X)


def test_predict_rejects_wrong_row_length():
    X, y = _smooth_dataset(30)
    regr = CARTRegressor().fit(X, y)
    with pytest.raises(ValueError):
        regr.predict(X[:, :2])
    with pytest.raises(ValueError):
        regr.predict([0.5, 0.5])
    with pytest.raises(ValueError):
        regr.predict([])


def test_rules_and_print_tree(capsys):
    X, y = _step_dataset()
    regr = CARTRegressor(feature_names=["x"]).fit(X, y)
    rules = regr.export_rules()
    assert rules == ["x <= 2.5 => value=10 (N=2)", "x > 2.5 => value=20 (N=2)"]
    regr.print_tree()
    out = capsys.readouterr().out
    assert "if x <= 2.5:" in out
    assert "Predict 20.0000 (N=2)" in out
    single = CARTRegressor(max_depth=0).fit(X, y)
    assert single.export_rules() == ["<root> => value=15 (N=4)"]


def test_verbose_logs_fit_summary(caplog):
    X, y = _step_dataset()
    caplog.set_level(logging.DEBUG, logger="cartreg")
    CARTRegressor(verbose=2).fit(X, y)
    assert "fitted tree on 4 rows x 1 features: 3 nodes, 2 leaves" in caplog.text
    assert "X[0] <= 2.5" in caplog.text
    caplog.clear()
    CARTRegressor().fit(X, y)
    assert caplog.text == ""


def test_tree_dict_roundtrip_predicts_the_same():
    X, y = _smooth_dataset()
    regr = CARTRegressor(max_depth=4).fit(X, y)
    restored = Tree.from_dict(regr.tree_.to_dict())
    assert [restored.predict_row(x) for x in X.tolist()] == regr.predict(X).tolist()
