"""
Kernel Classifier - 커널 서포트 벡터 머신
=========================================

최대 마진 분류기를 커널과 SMO 쌍대 풀이기로 적합합니다.
다중 클래스는 one-vs-one으로 확장하고, 선택적으로 Platt 스케일링으로
확률을 보정합니다. 같은 쌍대 풀이기로 ε-SVR 회귀도 제공합니다.

수학적 배경:
-----------
이진 쌍대 문제 (y_i ∈ {+1, -1}):
    max_α  Σα_i - (1/2) ΣΣ α_i α_j y_i y_j K(x_i, x_j)
    s.t.   0 <= α_i <= C,   Σ α_i y_i = 0

결정 함수:
    f(x) = Σ_i y_i α_i K(x_i, x) - ρ

서포트 벡터:
    α_i > 0        서포트 벡터
    0 < α_i < C    정확히 마진 위
    α_i = C        마진 위반 또는 오분류 (bound SV)

One-vs-one:
    k개 클래스에 대해 C(k, 2)개의 이진 분류기.
    쌍 (a, b) (클래스 순서상 a가 앞)는 f(x) > 0이면 a, 아니면 b에 투표.
    득표가 가장 많은 클래스를 선택하며 동률이면 클래스 인덱스가 작은 쪽.

Platt 스케일링:
    P(y = +1 | f) = 1 / (1 + exp(-(w f + b)))
    내부 교차검증으로 얻은 결정값에 1차원 로지스틱 회귀를 적합하여
    마진을 적합한 데이터에 그대로 재적합하는 과적합을 피합니다.
    로지스틱 회귀는 벌점 없이 (C = ∞) Platt의 평활 목표값
        t₊ = (N₊ + 1) / (N₊ + 2),   t₋ = 1 / (N₋ + 2)
    에 대해 적합합니다. 각 결정값을 두 레이블로 복제하고 t, 1 - t를
    표본 가중치로 줍니다. 벌점이 있으면 기울기가 n에 따라 줄어들고,
    0/1 목표값은 분리 가능한 폴드에서 기울기가 발산합니다.
    다중 클래스 확률은 쌍별 확률의 결합(pairwise coupling)으로 계산.

Author: ML From Scratch Project
"""

import itertools
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from joblib import Parallel, delayed
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import mean_squared_error, zero_one_loss
from sklearn.model_selection import StratifiedKFold

from .cross_validation import CVConfig, CVResult, grid_product, run_folds
from .dataset import Dataset
from .exceptions import DegenerateInput, InvalidModelSpec
from .kernels import Kernel
from .smo import solve_smo

SUPPORT_EPS = 1e-8


def _platt_fit(f: np.ndarray, labels: np.ndarray) -> Tuple[float, float]:
    """
    평활 목표값에 대한 벌점 없는 1차원 로지스틱 회귀

    Parameters
    ----------
    f : np.ndarray
        결정값
    labels : np.ndarray
        양성이면 True (또는 1)

    Returns
    -------
    (w, b) : P(+ | f) = 1 / (1 + exp(-(w f + b)))
    """
    f = np.asarray(f, dtype=float).ravel()
    pos = np.asarray(labels).astype(bool)
    n_pos, n_neg = int(pos.sum()), int((~pos).sum())
    target = np.where(pos, (n_pos + 1.0) / (n_pos + 2.0), 1.0 / (n_neg + 2.0))

    n = len(f)
    lr = LogisticRegression(C=np.inf, tol=1e-10, max_iter=1000)
    lr.fit(
        np.concatenate([f, f]).reshape(-1, 1),
        np.concatenate([np.ones(n, dtype=int), np.zeros(n, dtype=int)]),
        sample_weight=np.concatenate([target, 1.0 - target])
    )
    return float(lr.coef_[0, 0]), float(lr.intercept_[0])



def _as_matrix(X: np.ndarray, n_features: int) -> np.ndarray:
    X = np.asarray(X, dtype=float)
    if X.ndim == 1:
        X = X.reshape(1, -1)
    if X.shape[1] != n_features:
        raise DegenerateInput(
            f"피처 수가 일치하지 않습니다: {X.shape[1]} vs {n_features}"
        )
    return X


@dataclass(frozen=True)
class Prediction:
    """
    단일 관측치 예측 결과

    Attributes
    ----------
    label : Any
        예측 클래스
    decision_value : float or ndarray
        이진: f(x), 다중 클래스: 쌍별 결정값 벡터 (pairs 순서)
    votes : dict, optional
        클래스별 득표 수 (다중 클래스)
    probability : dict, optional
        클래스별 보정 확률 (probability=True로 적합한 경우에만)
    """
    label: Any
    decision_value: Union[float, np.ndarray]
    votes: Optional[Dict[Any, int]] = None
    probability: Optional[Dict[Any, float]] = None


@dataclass(frozen=True, eq=False)
class BinaryMachine:
    """하나의 클래스 쌍에 대한 이진 SVM"""
    positive: Any
    negative: Any
    kernel: Kernel
    cost: float
    support_vectors: np.ndarray
    dual_coef: np.ndarray            # y_i α_i
    rho: float
    support_indices: np.ndarray      # 전체 학습 데이터 기준 인덱스
    n_bound: int
    n_iter: int
    converged: bool
    kkt_gap: float
    platt: Optional[Tuple[float, float]] = None    # (w, b)

    @property
    def n_support(self) -> int:
        return len(self.dual_coef)

    @property
    def n_free(self) -> int:
        return self.n_support - self.n_bound

    def decision_function(self, X: np.ndarray) -> np.ndarray:
        X = _as_matrix(X, self.support_vectors.shape[1])
        if self.n_support == 0:
            return np.full(X.shape[0], -self.rho)
        return self.kernel.gram(X, self.support_vectors) @ self.dual_coef - self.rho

    def positive_probability(self, f: np.ndarray) -> np.ndarray:
        if self.platt is None:
            raise InvalidModelSpec("확률 보정 없이 적합된 모델입니다 (probability=True 필요).")
        w, b = self.platt
        return 1.0 / (1.0 + np.exp(-(w * f + b)))

    @property
    def weight(self) -> np.ndarray:
        """선형 커널의 초평면 법선 벡터 w = Σ y_i α_i x_i"""
        if self.kernel.name != 'linear':
            raise InvalidModelSpec("w는 선형 커널에서만 정의됩니다.")
        return self.dual_coef @ self.support_vectors


def _couple_pairwise(r: np.ndarray, max_iter: int = 100) -> np.ndarray:
    """
    쌍별 확률 r[i, j] = P(i | i 또는 j)로부터 클래스 확률 결합

    min_p  Σ_i Σ_{j≠i} (r_ji p_i - r_ij p_j)²,   Σ p = 1
    을 좌표별 고정점 반복으로 풉니다 (Wu, Lin & Weng, 2004의 두 번째 방법).
    """
    k = r.shape[0]
    Q = -r.T * r
    np.fill_diagonal(Q, np.sum(r.T ** 2, axis=1) - np.diag(r) ** 2)

    p = np.full(k, 1.0 / k)
    eps = 0.005 / k

    for _ in range(max(max_iter, k)):
        Qp = Q @ p
        pQp = p @ Qp
        if np.max(np.abs(Qp - pQp)) < eps:
            break
        for t in range(k):
            diff = (-Qp[t] + pQp) / Q[t, t]
            p[t] += diff
            pQp = (pQp + diff * (diff * Q[t, t] + 2 * Qp[t])) / (1 + diff) ** 2
            Qp = (Qp + diff * Q[t]) / (1 + diff)
            p /= (1 + diff)

    return p


@dataclass(frozen=True, eq=False)
class KernelModel:
    """학습된 커널 분류기 (불변)"""
    classes: Tuple[Any, ...]
    kernel: Kernel
    cost: float
    machines: Tuple[BinaryMachine, ...]
    feature_names: Tuple[str, ...]
    probability: bool = False

    @property
    def n_features(self) -> int:
        return len(self.feature_names)

    @property
    def pairs(self) -> List[Tuple[Any, Any]]:
        return [(m.positive, m.negative) for m in self.machines]

    @property
    def converged(self) -> bool:
        return all(m.converged for m in self.machines)

    @property
    def support_indices(self) -> np.ndarray:
        """어느 쌍에서든 서포트 벡터인 학습 관측치 인덱스"""
        if not self.machines:
            return np.array([], dtype=int)
        return np.unique(np.concatenate([m.support_indices for m in self.machines]))

    @property
    def n_support(self) -> int:
        return len(self.support_indices)

    def decision_function(self, X: np.ndarray) -> np.ndarray:
        """이진: (n,), 다중 클래스: (n, n_pairs)"""
        X = _as_matrix(X, self.n_features)
        values = np.column_stack([m.decision_function(X) for m in self.machines])
        if len(self.machines) == 1:
            return values[:, 0]
        return values

    def _votes(self, X: np.ndarray) -> np.ndarray:
        X = _as_matrix(X, self.n_features)
        index = {c: i for i, c in enumerate(self.classes)}
        votes = np.zeros((X.shape[0], len(self.classes)), dtype=int)
        for m in self.machines:
            f = m.decision_function(X)
            winner = np.where(f > 0, index[m.positive], index[m.negative])
            np.add.at(votes, (np.arange(X.shape[0]), winner), 1)
        return votes

    def predict(self, X: np.ndarray) -> np.ndarray:
        """레이블 예측 (동률이면 인덱스가 작은 클래스)"""
        votes = self._votes(X)
        # argmax는 첫 번째 최댓값을 반환
        return np.asarray(self.classes)[np.argmax(votes, axis=1)]

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        """클래스별 보정 확률 (n, k), 열 순서는 classes"""
        if not self.probability:
            raise InvalidModelSpec("확률 보정 없이 적합된 모델입니다 (probability=True 필요).")
        X = _as_matrix(X, self.n_features)
        k = len(self.classes)
        index = {c: i for i, c in enumerate(self.classes)}

        pair_prob = [m.positive_probability(m.decision_function(X)) for m in self.machines]
        pair_prob = [np.clip(pp, 1e-7, 1 - 1e-7) for pp in pair_prob]

        if k == 2:
            p_pos = pair_prob[0]
            out = np.zeros((X.shape[0], 2))
            out[:, index[self.machines[0].positive]] = p_pos
            out[:, index[self.machines[0].negative]] = 1 - p_pos
            return out

        out = np.zeros((X.shape[0], k))
        for row in range(X.shape[0]):
            r = np.zeros((k, k))
            for m, pp in zip(self.machines, pair_prob):
                a, b = index[m.positive], index[m.negative]
                r[a, b] = pp[row]
                r[b, a] = 1 - pp[row]
            out[row] = _couple_pairwise(r)
        return out

    def predict_one(self, x: np.ndarray) -> Prediction:
        """단일 관측치에 대한 태그된 예측 결과"""
        x = _as_matrix(x, self.n_features)
        decision = self.decision_function(x)[0]
        votes = self._votes(x)[0]
        label = self.classes[int(np.argmax(votes))]

        probability = None
        if self.probability:
            proba = self.predict_proba(x)[0]
            probability = {c: float(p) for c, p in zip(self.classes, proba)}

        return Prediction(
            label=label,
            decision_value=float(decision) if np.ndim(decision) == 0 else decision,
            votes={c: int(v) for c, v in zip(self.classes, votes)},
            probability=probability
        )

    def __repr__(self) -> str:
        return (
            f"KernelModel(classes={list(self.classes)}, {self.kernel!r}, "
            f"cost={self.cost}, n_support={self.n_support})"
        )


@dataclass(frozen=True, eq=False)
class KernelRegressionModel:
    """학습된 ε-SVR 모델"""
    kernel: Kernel
    cost: float
    epsilon: float
    support_vectors: np.ndarray
    dual_coef: np.ndarray            # α_i - α*_i
    rho: float
    support_indices: np.ndarray
    feature_names: Tuple[str, ...]
    n_iter: int
    converged: bool

    @property
    def n_support(self) -> int:
        return len(self.dual_coef)

    def predict(self, X: np.ndarray) -> np.ndarray:
        X = _as_matrix(X, len(self.feature_names))
        if self.n_support == 0:
            return np.full(X.shape[0], -self.rho)
        return self.kernel.gram(X, self.support_vectors) @ self.dual_coef - self.rho


@dataclass(frozen=True, eq=False)
class TuningResult:
    """그리드 탐색 결과"""
    best_cost: float
    best_gamma: Optional[float]
    cv: CVResult
    best_model: Any

    def to_frame(self):
        return self.cv.to_frame()


class _KernelMachine:
    """커널 분류기/회귀기 공통: 그리드 탐색"""

    kernel: Kernel
    cost: float
    cv: CVConfig
    verbose: int
    _loss = 'error'
    _stratify = False

    def _clone(self, cost: float, gamma: Optional[float]):
        raise NotImplementedError

    def _holdout_error(self, model, X: np.ndarray, y: np.ndarray) -> float:
        raise NotImplementedError

    def fit(self, dataset: Dataset):
        raise NotImplementedError

    def tune(
        self,
        dataset: Dataset,
        costs: Sequence[float],
        gammas: Optional[Sequence[float]] = None,
        folds: Optional[int] = None,
        repeats: Optional[int] = None
    ) -> TuningResult:
        """
        (cost, gamma) 그리드 탐색

        gamma는 RBF 커널에만 적용되며 다른 커널에서는 무시됩니다.
        평균 오차가 최소인 점을 고르고, 동률이면 작은 cost, 그다음 작은 gamma.

        Returns
        -------
        result : TuningResult
            최적 (cost, gamma), 그리드 전체의 CVResult, 전체 데이터로 재적합한 모델
        """
        costs = sorted(float(c) for c in costs)
        if not costs or costs[0] <= 0:
            raise InvalidModelSpec("cost 그리드는 비어 있지 않은 양수 목록이어야 합니다.")

        if self.kernel.name == 'radial' and gammas is not None:
            gamma_grid = sorted(float(g) for g in gammas)
            if not gamma_grid or gamma_grid[0] <= 0:
                raise InvalidModelSpec("gamma 그리드는 양수 목록이어야 합니다.")
        elif self.kernel.name == 'radial':
            gamma_grid = [self.kernel.resolve(dataset.n_features).gamma]
        else:
            gamma_grid = [None]

        # cost, gamma 오름차순 → argmin이 동률 규칙을 그대로 따름
        grid = grid_product(('cost', 'gamma'), (costs, gamma_grid))

        cfg = CVConfig(
            n_splits=folds if folds is not None else self.cv.n_splits,
            n_repeats=repeats if repeats is not None else self.cv.n_repeats,
            shuffle=self.cv.shuffle,
            random_state=self.cv.random_state,
            stratify=self._stratify,
            n_jobs=self.cv.n_jobs,
            parallel_backend=self.cv.parallel_backend
        )

        if self.verbose > 0:
            print(f"그리드 탐색: {len(grid)}개 점, {cfg.n_splits}겹 × {cfg.n_repeats}회")

        def fold_errors(train_idx, test_idx):
            train = dataset.take(train_idx)
            X_test, y_test = dataset.X[test_idx], dataset.y[test_idx]
            errors = []
            for point in grid:
                model = self._clone(point['cost'], point['gamma']).fit(train)
                errors.append(self._holdout_error(model, X_test, y_test))
            return np.array(errors)

        errors = run_folds(fold_errors, dataset.y, cfg)
        cv_result = CVResult(params=tuple(grid), errors=errors, loss=self._loss)
        best = cv_result.best_index
        cv_result = cv_result.with_choice(best)

        best_cost = grid[best]['cost']
        best_gamma = grid[best]['gamma']

        if self.verbose > 0:
            print(f"최적: cost={best_cost}, gamma={best_gamma}, "
                  f"CV 오차={cv_result.mean[best]:.4f}")

        return TuningResult(
            best_cost=best_cost,
            best_gamma=best_gamma,
            cv=cv_result,
            best_model=self._clone(best_cost, best_gamma).fit(dataset)
        )


class KernelClassifier(_KernelMachine):
    """
    커널 SVM 분류기 (From Scratch)

    Parameters
    ----------
    kernel : Kernel, default=Kernel.radial()
        커널 기술자. RBF gamma가 None이면 1/n_features

    cost : float, default=1.0
        상자 제약 상한 C

    tol : float, default=1e-3
        SMO의 KKT 위반 허용오차

    max_iter : int, default=100000
        SMO 최대 갱신 횟수 (도달 시 InfeasibleDual 경고)

    probability : bool, default=False
        Platt 스케일링으로 확률을 보정할지 여부

    cv : CVConfig, optional
        tune()과 병렬 처리 설정 (n_jobs는 one-vs-one 쌍 병렬에도 사용)

    random_state : int, default=0
        확률 보정용 내부 교차검증 시드

    verbose : int, default=0
        출력 수준

    Examples
    --------
    >>> clf = KernelClassifier(kernel=Kernel.linear(), cost=10.0)
    >>> model = clf.fit(dataset)
    >>> clf.predict(model, dataset.X[0]).label
    """

    _loss = 'misclassification'
    _stratify = True

    def __init__(
        self,
        kernel: Optional[Kernel] = None,
        cost: float = 1.0,
        tol: float = 1e-3,
        max_iter: int = 100000,
        probability: bool = False,
        cv: Optional[CVConfig] = None,
        random_state: int = 0,
        verbose: int = 0
    ):
        if cost <= 0:
            raise InvalidModelSpec(f"cost는 양수여야 합니다: {cost}")
        self.kernel = kernel or Kernel.radial()
        self.cost = float(cost)
        self.tol = tol
        self.max_iter = max_iter
        self.probability = probability
        self.cv = cv or CVConfig(stratify=True)
        self.random_state = random_state
        self.verbose = verbose

    def _clone(self, cost: float, gamma: Optional[float]) -> 'KernelClassifier':
        kernel = self.kernel.with_gamma(gamma) if self.kernel.name == 'radial' else self.kernel
        return KernelClassifier(
            kernel=kernel,
            cost=cost,
            tol=self.tol,
            max_iter=self.max_iter,
            probability=False,
            cv=CVConfig(n_jobs=1),
            random_state=self.random_state,
            verbose=0
        )

    def _holdout_error(self, model: KernelModel, X: np.ndarray, y: np.ndarray) -> float:
        return float(zero_one_loss(y, model.predict(X)))

    def _solve_binary(
        self,
        K: np.ndarray,
        signs: np.ndarray
    ):
        """이진 C-SVC 쌍대 문제 풀이"""
        n = len(signs)
        Q = np.outer(signs, signs) * K
        return solve_smo(
            Q=Q,
            p=-np.ones(n),
            y=signs,
            C=np.full(n, self.cost),
            tol=self.tol,
            max_iter=self.max_iter,
            verbose=self.verbose
        )

    def _cv_decision_values(
        self,
        K: np.ndarray,
        signs: np.ndarray
    ) -> np.ndarray:
        """Platt 스케일링용 내부 교차검증 결정값"""
        n_min = min(np.sum(signs > 0), np.sum(signs < 0))
        n_splits = min(5, int(n_min))
        if n_splits < 2:
            # 폴드를 만들 수 없으면 학습 결정값 사용
            res = self._solve_binary(K, signs)
            return K @ (signs * res.alpha) - res.rho

        decision = np.zeros(len(signs))
        splitter = StratifiedKFold(
            n_splits=n_splits, shuffle=True, random_state=self.random_state
        )
        for train_idx, test_idx in splitter.split(np.zeros(len(signs)), signs):
            res = self._solve_binary(K[np.ix_(train_idx, train_idx)], signs[train_idx])
            decision[test_idx] = (
                K[np.ix_(test_idx, train_idx)] @ (signs[train_idx] * res.alpha) - res.rho
            )
        return decision

    def _fit_binary(
        self,
        X: np.ndarray,
        K_full: np.ndarray,
        y: np.ndarray,
        positive: Any,
        negative: Any,
        kernel: Kernel
    ) -> BinaryMachine:
        idx = np.where((y == positive) | (y == negative))[0]
        signs = np.where(y[idx] == positive, 1.0, -1.0)
        K = K_full[np.ix_(idx, idx)]

        res = self._solve_binary(K, signs)
        sv = res.alpha > SUPPORT_EPS

        platt = None
        if self.probability:
            f = self._cv_decision_values(K, signs)
            platt = _platt_fit(f, signs > 0)

        support_vectors = X[idx[sv]].copy()
        dual_coef = signs[sv] * res.alpha[sv]
        support_vectors.setflags(write=False)
        dual_coef.setflags(write=False)

        return BinaryMachine(
            positive=positive,
            negative=negative,
            kernel=kernel,
            cost=self.cost,
            support_vectors=support_vectors,
            dual_coef=dual_coef,
            rho=res.rho,
            support_indices=idx[sv],
            n_bound=int(np.sum(res.alpha[sv] >= self.cost * (1 - 1e-12))),
            n_iter=res.n_iter,
            converged=res.converged,
            kkt_gap=res.kkt_gap,
            platt=platt
        )

    def fit(self, dataset: Dataset) -> KernelModel:
        """
        커널 SVM 학습

        Parameters
        ----------
        dataset : Dataset
            학습 데이터 (범주형 반응)

        Returns
        -------
        model : KernelModel
            C(k, 2)개의 이진 분류기를 담은 불변 모델

        Raises
        ------
        DegenerateInput
            클래스가 하나뿐인 경우
        """
        classes = dataset.classes()
        if len(classes) < 2:
            raise DegenerateInput(f"두 개 이상의 클래스가 필요합니다: {classes}")

        kernel = self.kernel.resolve(dataset.n_features)
        X = np.asarray(dataset.X)
        y = np.asarray(dataset.y)
        K_full = kernel.gram(X, X)

        pairs = list(itertools.combinations(classes, 2))

        if self.verbose > 0:
            print(f"SVM 학습: {len(classes)}개 클래스, {len(pairs)}개 이진 분류기, {kernel!r}")

        machines = Parallel(n_jobs=self.cv.n_jobs, prefer=self.cv.parallel_backend)(
            delayed(self._fit_binary)(X, K_full, y, a, b, kernel) for a, b in pairs
        )

        return KernelModel(
            classes=tuple(classes),
            kernel=kernel,
            cost=self.cost,
            machines=tuple(machines),
            feature_names=dataset.feature_names,
            probability=self.probability
        )

    def predict(self, model: KernelModel, x: np.ndarray) -> Prediction:
        """단일 관측치 예측 ({label, decision_value, ...})"""
        return model.predict_one(x)

    def predict_probability(self, model: KernelModel, x: np.ndarray) -> Dict[Any, float]:
        """단일 관측치의 클래스별 보정 확률 (probability=True로 적합한 경우에만)"""
        proba = model.predict_proba(x)[0]
        return {c: float(p) for c, p in zip(model.classes, proba)}

    def __repr__(self) -> str:
        return f"KernelClassifier({self.kernel!r}, cost={self.cost})"


class KernelRegressor(_KernelMachine):
    """
    ε-서포트 벡터 회귀 (From Scratch)

    쌍대 문제 (α, α* ∈ [0, C]):
        min  (1/2)(α - α*)ᵀK(α - α*) + ε Σ(α_i + α*_i) - Σ y_i (α_i - α*_i)
        s.t. Σ(α_i - α*_i) = 0

    2n개 변수로 펼쳐 분류기와 같은 SMO 풀이기로 풉니다.

    Parameters
    ----------
    kernel : Kernel, default=Kernel.radial()
    cost : float, default=1.0
    epsilon : float, default=0.1
        ε-비민감 손실의 튜브 폭
    tol, max_iter, cv, verbose
        KernelClassifier와 동일
    """

    _loss = 'mse'
    _stratify = False

    def __init__(
        self,
        kernel: Optional[Kernel] = None,
        cost: float = 1.0,
        epsilon: float = 0.1,
        tol: float = 1e-3,
        max_iter: int = 100000,
        cv: Optional[CVConfig] = None,
        verbose: int = 0
    ):
        if cost <= 0:
            raise InvalidModelSpec(f"cost는 양수여야 합니다: {cost}")
        if epsilon < 0:
            raise InvalidModelSpec(f"epsilon은 0 이상이어야 합니다: {epsilon}")
        self.kernel = kernel or Kernel.radial()
        self.cost = float(cost)
        self.epsilon = float(epsilon)
        self.tol = tol
        self.max_iter = max_iter
        self.cv = cv or CVConfig()
        self.verbose = verbose

    def _clone(self, cost: float, gamma: Optional[float]) -> 'KernelRegressor':
        kernel = self.kernel.with_gamma(gamma) if self.kernel.name == 'radial' else self.kernel
        return KernelRegressor(
            kernel=kernel,
            cost=cost,
            epsilon=self.epsilon,
            tol=self.tol,
            max_iter=self.max_iter,
            cv=CVConfig(n_jobs=1),
            verbose=0
        )

    def _holdout_error(self, model: KernelRegressionModel, X: np.ndarray, y: np.ndarray) -> float:
        return float(mean_squared_error(np.asarray(y, dtype=float), model.predict(X)))

    def fit(self, dataset: Dataset) -> KernelRegressionModel:
        y = dataset.regression_target()
        n = len(y)
        kernel = self.kernel.resolve(dataset.n_features)
        X = np.asarray(dataset.X)
        K = kernel.gram(X, X)

        signs = np.concatenate([np.ones(n), -np.ones(n)])
        K2 = np.tile(K, (2, 2))
        Q = np.outer(signs, signs) * K2
        p = np.concatenate([self.epsilon - y, self.epsilon + y])

        res = solve_smo(
            Q=Q,
            p=p,
            y=signs,
            C=np.full(2 * n, self.cost),
            tol=self.tol,
            max_iter=self.max_iter,
            verbose=self.verbose
        )

        coef = res.alpha[:n] - res.alpha[n:]
        sv = np.abs(coef) > SUPPORT_EPS

        support_vectors = X[sv].copy()
        dual_coef = coef[sv]
        support_vectors.setflags(write=False)
        dual_coef.setflags(write=False)

        if self.verbose > 0:
            print(f"SVR 학습 완료: 서포트 벡터 {int(np.sum(sv))}/{n}개")

        return KernelRegressionModel(
            kernel=kernel,
            cost=self.cost,
            epsilon=self.epsilon,
            support_vectors=support_vectors,
            dual_coef=dual_coef,
            rho=res.rho,
            support_indices=np.where(sv)[0],
            feature_names=dataset.feature_names,
            n_iter=res.n_iter,
            converged=res.converged
        )

    def __repr__(self) -> str:
        return f"KernelRegressor({self.kernel!r}, cost={self.cost}, epsilon={self.epsilon})"
