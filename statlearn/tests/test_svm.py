"""
커널, SMO, KernelClassifier, KernelRegressor 테스트
==================================================

SMO 해를 해석해 및 sklearn(libsvm)의 SVC/SVR과 비교합니다.

Author: ML From Scratch Project
"""

import numpy as np
import pytest
from sklearn.svm import SVC, SVR

from statlearn import (
    CVConfig,
    Dataset,
    DegenerateInput,
    InfeasibleDual,
    InvalidModelSpec,
    Kernel,
    KernelClassifier,
    KernelRegressor,
    Prediction,
)
from statlearn.smo import solve_smo
from statlearn.svm import BinaryMachine, KernelModel, _platt_fit


def _overlapping(n=60, seed=0):
    rng = np.random.default_rng(seed)
    X = np.vstack([rng.standard_normal((n // 2, 2)) + 1.0,
                   rng.standard_normal((n // 2, 2)) - 1.0])
    y = np.array([0] * (n // 2) + [1] * (n // 2))
    return Dataset(X, y)


def _three_classes(n_per=30, seed=2):
    rng = np.random.default_rng(seed)
    centers = [(0.0, 0.0), (3.0, 3.0), (-3.0, 3.0)]
    X = np.vstack([np.array(c) + rng.standard_normal((n_per, 2)) for c in centers])
    y = np.repeat(['setosa', 'versicolor', 'virginica'], n_per)
    return Dataset(X, y)


def test_kernel_values():
    """커널 함수 값"""
    print("="*50)
    print("Test: Kernel values")
    print("="*50)

    a = np.array([1.0, 2.0])
    b = np.array([0.5, -1.0])

    assert np.isclose(Kernel.linear()(a, b), a @ b)
    assert np.isclose(Kernel.polynomial(2)(a, b), (1 + a @ b) ** 2)
    assert np.isclose(Kernel.radial(0.5)(a, b), np.exp(-0.5 * np.sum((a - b) ** 2)))
    assert np.isclose(Kernel.radial(0.5)(a, a), 1.0)

    A = np.random.default_rng(0).standard_normal((5, 3))
    K = Kernel.radial(0.3).gram(A, A)
    assert np.allclose(K, K.T)
    assert np.all(np.linalg.eigvalsh(K) > -1e-10), "RBF 커널 행렬은 양반정치"

    assert Kernel.radial().resolve(4).gamma == 0.25
    assert Kernel.linear().resolve(4) == Kernel.linear()

    with pytest.raises(InvalidModelSpec):
        Kernel('sigmoid')
    with pytest.raises(InvalidModelSpec):
        Kernel.radial(-1.0)
    with pytest.raises(InvalidModelSpec):
        Kernel.polynomial(0)
    with pytest.raises(InvalidModelSpec):
        Kernel.radial().gram(A, A)

    print("  ✓ linear / polynomial / radial")


def test_smo_two_points():
    """두 점 하드 마진 문제의 해석해: α = (0.5, 0.5), ρ = 0"""
    print("\n" + "="*50)
    print("Test: SMO analytic solution")
    print("="*50)

    y = np.array([1.0, -1.0])
    K = np.array([[1.0, -1.0], [-1.0, 1.0]])
    res = solve_smo(np.outer(y, y) * K, -np.ones(2), y, np.full(2, 10.0))

    assert res.converged
    assert np.allclose(res.alpha, [0.5, 0.5])
    assert np.isclose(res.rho, 0.0)
    assert np.isclose(res.objective, -0.5)

    with pytest.raises(DegenerateInput):
        solve_smo(np.eye(2), -np.ones(2), np.ones(2), np.ones(2))

    print(f"  ✓ α={res.alpha}, ρ={res.rho}, 반복={res.n_iter}")


@pytest.mark.parametrize("kernel,sk_kwargs", [
    (Kernel.linear(), {'kernel': 'linear'}),
    (Kernel.radial(0.5), {'kernel': 'rbf', 'gamma': 0.5}),
    (Kernel.polynomial(2), {'kernel': 'poly', 'degree': 2, 'gamma': 1.0, 'coef0': 1.0}),
])
def test_binary_matches_libsvm(kernel, sk_kwargs):
    """이진 결정값이 sklearn SVC와 일치 (양성 클래스 = 앞 클래스이므로 부호 반대)"""
    print("\n" + "="*50)
    print(f"Test: Binary SVM vs libsvm ({kernel!r})")
    print("="*50)

    ds = _overlapping()
    model = KernelClassifier(kernel=kernel, cost=1.0, tol=1e-6).fit(ds)
    ref = SVC(C=1.0, tol=1e-6, shrinking=False, **sk_kwargs).fit(ds.X, ds.y)

    ours = model.decision_function(ds.X)
    theirs = -ref.decision_function(ds.X)

    assert model.converged
    assert np.allclose(ours, theirs, atol=1e-3), f"최대 차이: {np.max(np.abs(ours - theirs))}"
    assert np.array_equal(model.predict(ds.X), ref.predict(ds.X))

    machine = model.machines[0]
    assert np.isclose(np.sum(machine.dual_coef), 0.0, atol=1e-8), "Σ y_i α_i = 0"
    assert np.all(np.abs(machine.dual_coef) <= 1.0 + 1e-12), "0 <= α <= C"

    print(f"  ✓ 최대 차이: {np.max(np.abs(ours - theirs)):.2e}, SV={machine.n_support}")


def test_bound_support_vectors():
    """겹치는 데이터에서 작은 cost는 α = C 인 bound SV를 만듦"""
    ds = _overlapping(seed=3)
    model = KernelClassifier(kernel=Kernel.linear(), cost=0.1).fit(ds)
    machine = model.machines[0]

    assert machine.n_bound > 0
    assert machine.n_free == machine.n_support - machine.n_bound
    assert machine.weight.shape == (2,)

    radial = KernelClassifier(kernel=Kernel.radial(1.0)).fit(ds)
    with pytest.raises(InvalidModelSpec):
        radial.machines[0].weight


def test_multiclass_prediction():
    """one-vs-one: C(3, 2)개 분류기, 태그된 예측 결과"""
    print("\n" + "="*50)
    print("Test: One-vs-one prediction")
    print("="*50)

    ds = _three_classes()
    clf = KernelClassifier(kernel=Kernel.radial(0.5), cost=10.0)
    model = clf.fit(ds)

    assert model.classes == ('setosa', 'versicolor', 'virginica')
    assert model.pairs == [('setosa', 'versicolor'), ('setosa', 'virginica'),
                           ('versicolor', 'virginica')]
    assert model.decision_function(ds.X).shape == (ds.n_samples, 3)

    pred = clf.predict(model, ds.X[0])
    assert isinstance(pred, Prediction)
    assert pred.label == model.predict(ds.X[:1])[0]
    assert sum(pred.votes.values()) == 3
    assert pred.probability is None
    assert len(pred.decision_value) == 3

    accuracy = np.mean(model.predict(ds.X) == ds.y)
    assert accuracy > 0.9
    print(f"  ✓ 학습 정확도: {accuracy:.3f}")


def test_probability_calibration():
    """Platt 확률: 각 행의 합 1, 예측 레이블과 대체로 일치"""
    print("\n" + "="*50)
    print("Test: Platt probabilities")
    print("="*50)

    ds = _three_classes()
    clf = KernelClassifier(kernel=Kernel.radial(0.5), cost=10.0, probability=True)
    model = clf.fit(ds)

    proba = model.predict_proba(ds.X)
    assert proba.shape == (ds.n_samples, 3)
    assert np.allclose(proba.sum(axis=1), 1.0, atol=1e-6)
    assert np.all((proba >= 0) & (proba <= 1))

    agree = np.mean(np.asarray(model.classes)[np.argmax(proba, axis=1)] == model.predict(ds.X))
    assert agree > 0.9

    probs = clf.predict_probability(model, ds.X[0])
    assert set(probs) == set(model.classes)
    assert np.isclose(sum(probs.values()), 1.0, atol=1e-6)
    assert clf.predict(model, ds.X[0]).probability is not None

    binary = KernelClassifier(kernel=Kernel.linear(), probability=True).fit(_overlapping())
    p2 = binary.predict_proba(np.array([[2.0, 2.0], [-2.0, -2.0]]))
    assert np.allclose(p2.sum(axis=1), 1.0)
    assert p2[0, 0] > 0.5 and p2[1, 1] > 0.5

    plain = KernelClassifier(kernel=Kernel.linear()).fit(_overlapping())
    with pytest.raises(InvalidModelSpec):
        plain.predict_proba(ds.X[:, :2])

    print(f"  ✓ 확률-레이블 일치율: {agree:.3f}")



def _platt_gradient(f, labels, w, b):
    pos = labels.astype(bool)
    target = np.where(pos, (pos.sum() + 1.0) / (pos.sum() + 2.0), 1.0 / ((~pos).sum() + 2.0))
    p = 1.0 / (1.0 + np.exp(-(w * f + b)))
    return np.array([np.sum((p - target) * f), np.sum(p - target)])


def test_platt_fit_is_unpenalized():
    """Platt 적합은 평활 목표값에 대한 벌점 없는 최대우도 해"""
    print("\n" + "="*50)
    print("Test: Platt sigmoid fit")
    print("="*50)

    rng = np.random.default_rng(9)
    f = rng.standard_normal(30) * 2.0
    labels = rng.uniform(size=30) < 1.0 / (1.0 + np.exp(-(3.0 * f - 0.5)))
    w, b = _platt_fit(f, labels)

    # 벌점이 있으면 기울기 방향 그래디언트가 w/C 만큼 남음
    assert np.allclose(_platt_gradient(f, labels, w, b), 0.0, atol=1e-4), "최적 조건 불만족"
    assert w > 0

    # 분리 가능한 결정값에서도 기울기가 유한
    sep = np.concatenate([np.linspace(1.0, 3.0, 15), np.linspace(-3.0, -1.0, 15)])
    sep_labels = np.array([1] * 15 + [0] * 15)
    w_sep, b_sep = _platt_fit(sep, sep_labels)
    assert np.isfinite(w_sep) and 0 < w_sep < 100
    assert np.allclose(_platt_gradient(sep, sep_labels, w_sep, b_sep), 0.0, atol=1e-4)

    # 잘 분리된 두 군집
    rng = np.random.default_rng(10)
    X = np.vstack([rng.standard_normal((15, 2)) * 0.5 + 3, rng.standard_normal((15, 2)) * 0.5 - 3])
    ds = Dataset(X, np.array(['a'] * 15 + ['b'] * 15))
    model = KernelClassifier(kernel=Kernel.linear(), cost=10.0, probability=True).fit(ds)
    w_model, _ = model.machines[0].platt
    assert np.isfinite(w_model) and w_model > 0
    proba = model.predict_proba(np.array([[3.0, 3.0], [-3.0, -3.0]]))
    assert proba[0, 0] > 0.5 and proba[1, 1] > 0.5

    print(f"  ✓ w={w:.3f}, b={b:.3f}, 분리 가능 w={w_sep:.3f}, 군집 모델 w={w_model:.3f}")


def test_ovo_vote_tie_goes_to_first_class():
    """1-1-1 동률 투표는 클래스 순서상 첫 번째 클래스로"""
    print("\n" + "="*50)
    print("Test: One-vs-one vote tie")
    print("="*50)

    def constant_machine(positive, negative, value):
        # 서포트 벡터가 없으면 f(x) = -rho
        return BinaryMachine(
            positive=positive, negative=negative, kernel=Kernel.linear(), cost=1.0,
            support_vectors=np.zeros((0, 2)), dual_coef=np.zeros(0), rho=-value,
            support_indices=np.array([], dtype=int), n_bound=0, n_iter=0,
            converged=True, kkt_gap=0.0
        )

    # a>b, c>a, b>c: 각 클래스 1표
    model = KernelModel(
        classes=('a', 'b', 'c'),
        kernel=Kernel.linear(),
        cost=1.0,
        machines=(constant_machine('a', 'b', 1.0),
                  constant_machine('a', 'c', -1.0),
                  constant_machine('b', 'c', 1.0)),
        feature_names=('x0', 'x1')
    )

    X = np.zeros((4, 2))
    assert model.predict(X).tolist() == ['a'] * 4
    pred = KernelClassifier().predict(model, X[0])
    assert pred.votes == {'a': 1, 'b': 1, 'c': 1}
    assert pred.label == 'a'

    # b가 두 표를 얻으면 b
    model_b = KernelModel(
        classes=('a', 'b', 'c'),
        kernel=Kernel.linear(),
        cost=1.0,
        machines=(constant_machine('a', 'b', -1.0),
                  constant_machine('a', 'c', -1.0),
                  constant_machine('b', 'c', 1.0)),
        feature_names=('x0', 'x1')
    )
    assert model_b.predict(X[:1])[0] == 'b'
    print(f"  ✓ 동률 투표 → {pred.label}")


def test_tune_ties_prefer_smallest_cost_then_gamma():
    """모든 그리드 점의 CV 오차가 같으면 가장 작은 cost, 가장 작은 gamma"""
    print("\n" + "="*50)
    print("Test: Tuning tie-break")
    print("="*50)

    rng = np.random.default_rng(11)
    X = np.vstack([rng.standard_normal((20, 2)) * 0.3 + 5, rng.standard_normal((20, 2)) * 0.3 - 5])
    ds = Dataset(X, np.array([0] * 20 + [1] * 20))
    clf = KernelClassifier(kernel=Kernel.radial(),
                           cv=CVConfig(n_splits=4, random_state=0, stratify=True))

    result = clf.tune(ds, costs=[10.0, 1.0, 100.0], gammas=[0.05, 0.01])

    assert np.all(result.cv.mean == 0.0), "분리된 군집에서 모든 점이 오차 0이어야 함"
    assert result.best_cost == 1.0
    assert result.best_gamma == 0.01
    assert result.best_model.cost == 1.0
    print(f"  ✓ cost={result.best_cost}, gamma={result.best_gamma}")


def test_classifier_degenerate_inputs():
    """단일 클래스, 잘못된 cost, 피처 수 불일치, 반복 상한"""
    print("\n" + "="*50)
    print("Test: Degenerate inputs")
    print("="*50)

    with pytest.raises(DegenerateInput):
        KernelClassifier().fit(Dataset(np.arange(6.0).reshape(3, 2), np.array(['a'] * 3)))
    with pytest.raises(InvalidModelSpec):
        KernelClassifier(cost=0.0)

    ds = _overlapping()
    model = KernelClassifier(kernel=Kernel.linear()).fit(ds)
    with pytest.raises(DegenerateInput):
        model.predict(np.ones((2, 3)))

    with pytest.warns(InfeasibleDual):
        capped = KernelClassifier(kernel=Kernel.radial(1.0), max_iter=1).fit(ds)
    assert not capped.converged
    assert capped.machines[0].kkt_gap >= 1e-3

    print("  ✓ 예외 및 경고 확인")


def test_tune_linear_ignores_gamma():
    """선형 커널에서는 gamma 그리드를 무시"""
    ds = _overlapping(n=40, seed=5)
    clf = KernelClassifier(kernel=Kernel.linear(),
                           cv=CVConfig(n_splits=4, random_state=0, stratify=True))
    result = clf.tune(ds, costs=[1.0, 0.1], gammas=[0.5, 1.0])

    assert result.best_gamma is None
    assert len(result.cv.params) == 2
    assert result.cv.param_values('cost').tolist() == [0.1, 1.0]
    assert result.cv.errors.shape == (4, 2)
    assert result.best_model.cost == result.best_cost

    with pytest.raises(InvalidModelSpec):
        clf.tune(ds, costs=[])


def test_svr_matches_libsvm():
    """ε-SVR 예측이 sklearn SVR과 일치"""
    print("\n" + "="*50)
    print("Test: ε-SVR vs libsvm")
    print("="*50)

    rng = np.random.default_rng(4)
    X = np.sort(rng.uniform(-3, 3, 50)).reshape(-1, 1)
    y = np.sin(X[:, 0]) + rng.standard_normal(50) * 0.1
    ds = Dataset(X, y)

    model = KernelRegressor(kernel=Kernel.radial(0.5), cost=1.0, epsilon=0.1, tol=1e-6).fit(ds)
    ref = SVR(kernel='rbf', gamma=0.5, C=1.0, epsilon=0.1, tol=1e-6, shrinking=False).fit(X, y)

    assert model.converged
    assert np.allclose(model.predict(X), ref.predict(X), atol=1e-3)
    assert abs(model.n_support - len(ref.support_)) <= 2

    tuned = KernelRegressor(kernel=Kernel.radial(), cv=CVConfig(n_splits=5, random_state=0))
    result = tuned.tune(ds, costs=[0.1, 1.0, 10.0], gammas=[0.1, 1.0])
    assert result.cv.loss == 'mse'
    assert result.cv.errors.shape == (5, 6)

    print(f"  ✓ SV 수: {model.n_support}, 최적 cost={result.best_cost}, gamma={result.best_gamma}")


if __name__ == "__main__":
    test_kernel_values()
    test_smo_two_points()
    test_binary_matches_libsvm(Kernel.linear(), {'kernel': 'linear'})
    test_bound_support_vectors()
    test_multiclass_prediction()
    test_probability_calibration()
    test_platt_fit_is_unpenalized()
    test_ovo_vote_tie_goes_to_first_class()
    test_tune_ties_prefer_smallest_cost_then_gamma()
    test_classifier_degenerate_inputs()
    test_tune_linear_ignores_gamma()
    test_svr_matches_libsvm()
    print("\n모든 SVM 테스트 통과")
