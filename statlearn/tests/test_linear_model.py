"""
LinearModelSelector 테스트
==========================

정보 기준 계산, 비교 가능성 검사, 단계적/전역 부분집합 선택을 검증합니다.

Author: ML From Scratch Project
"""

import numpy as np
import pytest
import statsmodels.api as sm
from sklearn.linear_model import LinearRegression

from statlearn import Dataset, DegenerateInput, InvalidModelSpec, LinearModelSelector


def _make_data(n=120, seed=0):
    rng = np.random.default_rng(seed)
    X = rng.standard_normal((n, 5))
    y = 1.5 + 2.0 * X[:, 0] - 1.0 * X[:, 2] + rng.standard_normal(n) * 0.5
    return Dataset(X, y, feature_names=('a', 'b', 'c', 'd', 'e'))


def test_score_matches_formula():
    """AIC/BIC/수정 R²를 직접 계산한 값과 비교"""
    print("="*50)
    print("Test: Information criteria")
    print("="*50)

    ds = _make_data()
    score = LinearModelSelector().score(ds, ['a', 'c'])

    ols = LinearRegression().fit(ds.X[:, [0, 2]], ds.y)
    resid = ds.y - ols.predict(ds.X[:, [0, 2]])
    rss = resid @ resid
    n, q = ds.n_samples, 3
    log_lik = -0.5 * n * (np.log(2 * np.pi * rss / n) + 1)
    tss = np.sum((ds.y - ds.y.mean()) ** 2)

    assert np.allclose(score.coef, ols.coef_)
    assert np.isclose(score.intercept, ols.intercept_)
    assert np.isclose(score.rss, rss)
    assert np.isclose(score.aic, -2 * log_lik + 2 * (q + 1))
    assert np.isclose(score.bic, -2 * log_lik + np.log(n) * (q + 1))
    assert np.isclose(score.adj_r2, 1 - (rss / (n - q)) / (tss / (n - 1)))
    assert score.criterion('adj_r2') == -score.adj_r2

    print(f"  ✓ {score}")


def test_score_matches_statsmodels():
    """로그우도는 statsmodels OLS와 같고, AIC/BIC는 분산 모수 하나만큼 차이"""
    ds = _make_data(seed=3)
    score = LinearModelSelector().score(ds, ['a', 'b', 'c'])
    ref = sm.OLS(ds.y, sm.add_constant(ds.X[:, :3])).fit()

    # statsmodels는 분산 모수를 k에 세지 않음
    assert np.isclose(score.log_likelihood, ref.llf)
    assert np.isclose(score.aic, ref.aic + 2)
    assert np.isclose(score.bic, ref.bic + np.log(ds.n_samples))
    assert np.isclose(score.adj_r2, ref.rsquared_adj)


def test_score_degenerate_designs():
    """특이 설계, 관측치 부족, 완전 적합은 DegenerateInput"""
    print("\n" + "="*50)
    print("Test: Degenerate designs")
    print("="*50)

    rng = np.random.default_rng(1)
    x = rng.standard_normal(10)
    ds = Dataset(np.column_stack([x, 2 * x]), rng.standard_normal(10))
    selector = LinearModelSelector()

    with pytest.raises(DegenerateInput):
        selector.score(ds, ['x0', 'x1'])

    tiny = Dataset(np.array([[1.0], [2.0]]), np.array([1.0, 3.0]))
    with pytest.raises(DegenerateInput):
        selector.score(tiny, ['x0'])

    exact = Dataset(np.arange(5.0).reshape(-1, 1), 3 * np.arange(5.0) + 1)
    with pytest.raises(DegenerateInput):
        selector.score(exact, ['x0'])

    with pytest.raises(InvalidModelSpec):
        selector.score(ds, ['missing'])

    print("  ✓ 예외 발생 확인")


def test_compare_requires_same_response():
    """반응변수 변환이 다르면 비교 불가"""
    print("\n" + "="*50)
    print("Test: compare() comparability")
    print("="*50)

    ds = _make_data()
    y_pos = ds.y - ds.y.min() + 1.0
    raw = Dataset(ds.X, y_pos, ds.feature_names)
    logged = Dataset(ds.X, np.log(y_pos), ds.feature_names, response_transform='log')

    selector = LinearModelSelector()
    a = selector.score(raw, ['a'])
    b = selector.score(raw, ['a', 'c'])
    c = selector.score(logged, ['a'])

    assert selector.compare(b, a) < 0, "참 피처를 추가하면 AIC가 감소해야 함"
    with pytest.raises(InvalidModelSpec):
        selector.compare(a, c)

    print(f"  ✓ ΔAIC(b - a) = {selector.compare(b, a):.3f}")


def test_forward_recovers_true_features():
    """forward / backward / both 모두 참 피처 {a, c}를 선택"""
    print("\n" + "="*50)
    print("Test: Stepwise recovers true model")
    print("="*50)

    ds = _make_data(n=200, seed=4)
    selector = LinearModelSelector(criterion='bic')

    for direction in ('forward', 'backward', 'both'):
        result = selector.stepwise(ds, direction=direction)
        assert {'a', 'c'} <= set(result.best), f"{direction}: {result.best}"
        assert len(result.best) < 5, "잡음 피처가 모두 선택됨"
        assert result.converged
        if direction != 'backward':
            assert [s.feature for s in result.trace[1:3]] == ['a', 'c']
        values = [s.criterion_value for s in result.trace]
        assert all(v2 < v1 for v1, v2 in zip(values, values[1:])), "기준값이 단조 감소하지 않음"
        print(f"  ✓ {direction}: {list(result.best)} ({len(result.trace) - 1} steps)")

    frame = result.to_frame()
    assert list(frame.columns) == ['step', 'action', 'feature', 'features', 'bic']


def test_stepwise_tie_break_lexicographic():
    """완전히 같은 기준값이면 사전순으로 앞선 피처"""
    print("\n" + "="*50)
    print("Test: Tie-break")
    print("="*50)

    rng = np.random.default_rng(2)
    x = rng.standard_normal(50)
    y = x + rng.standard_normal(50) * 0.3
    ds = Dataset(np.column_stack([x, x]), y, feature_names=('b', 'a'))

    with pytest.warns(UserWarning):
        result = LinearModelSelector().stepwise(ds, direction='forward')

    assert result.best == ('a',)
    print(f"  ✓ 선택: {result.best}")


def test_stepwise_perfect_fit_not_reported_as_collinear():
    """완전 적합 후보는 공선성 후보 목록(skipped)과 따로 경고"""
    rng = np.random.default_rng(13)
    noise = rng.standard_normal(30)
    exact = rng.standard_normal(30)
    y = 1.0 + 3.0 * exact
    ds = Dataset(np.column_stack([noise, exact]), y, feature_names=('noise', 'exact'))

    with pytest.warns(UserWarning, match="평가할 수 없는 후보") as record:
        result = LinearModelSelector().stepwise(ds, direction='forward')

    assert result.skipped == ()
    assert 'exact' not in result.best
    assert not any("특이 설계" in str(w.message) for w in record)


def test_backward_respects_floor():
    """floor에 있는 피처는 제거되지 않음"""
    ds = _make_data(n=150, seed=8)
    result = LinearModelSelector(criterion='bic').stepwise(
        ds, direction='backward', floor=['e']
    )
    assert 'e' in result.best
    assert {'a', 'c'} <= set(result.best)

    with pytest.raises(InvalidModelSpec):
        LinearModelSelector().stepwise(ds, initial=['a'], floor=['b'])
    with pytest.raises(InvalidModelSpec):
        LinearModelSelector().stepwise(ds, direction='sideways')


def test_best_subset():
    """크기별 최적 부분집합과 전체 최적 모델"""
    print("\n" + "="*50)
    print("Test: Best subset")
    print("="*50)

    ds = _make_data(n=150, seed=6)
    result = LinearModelSelector(criterion='bic').best_subset(ds)

    assert len(result.per_size) == 6
    assert [len(s.features) for s in result.per_size] == list(range(6))
    rss = [s.rss for s in result.per_size]
    assert all(r2 <= r1 for r1, r2 in zip(rss, rss[1:])), "크기별 RSS는 비증가"
    assert result.per_size[2].features == ('a', 'c')
    assert {'a', 'c'} <= set(result.best.features)
    assert result.to_frame()['best'].sum() == 1

    print(result.to_frame()[['size', 'features', 'bic']].to_string(index=False))


if __name__ == "__main__":
    test_score_matches_formula()
    test_score_matches_statsmodels()
    test_score_degenerate_designs()
    test_compare_requires_same_response()
    test_forward_recovers_true_features()
    test_stepwise_tie_break_lexicographic()
    test_stepwise_perfect_fit_not_reported_as_collinear()
    test_backward_respects_floor()
    test_best_subset()
    print("\n모든 LinearModelSelector 테스트 통과")
