import logging
from time import perf_counter

import pandas as pd
from sklearn.datasets import load_diabetes
from sklearn.model_selection import train_test_split
from sklearn.tree import DecisionTreeRegressor

from cartreg import CARTRegressor

logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

data = load_diabetes(as_frame=True)
Xdf: pd.DataFrame = data.data
y = data.target.values
feats = list(Xdf.columns)

X_train, X_test, y_train, y_test = train_test_split(Xdf.values, y, test_size=0.2, random_state=42)

reg = CARTRegressor(
    min_size_to_split=30, min_leaf_size=10, max_depth=5,
    feature_names=feats, verbose=1,
)

t0 = perf_counter(); reg.fit(X_train, y_train); print(f"fit: {perf_counter()-t0:.3f} s")
print(f"R^2 (test): {reg.score(X_test, y_test):.3f}")

# same stopping rules in scikit-learn for comparison
skl = DecisionTreeRegressor(min_samples_split=30, min_samples_leaf=10, max_depth=5, random_state=42)
skl.fit(X_train, y_train)
print(f"sklearn R^2 (test): {skl.score(X_test, y_test):.3f}")

try:
    reg.export_graphviz("diabetes_tree", format="dot")
except RuntimeError as e:
    print(f"Skipping Graphviz export: {e}")
reg.print_tree()
