"""
Regularized Linear Solver - 좌표 하강법 기반 Elastic-Net
======================================================

Ridge, LASSO, Elastic-Net 회귀를 λ 경로 위에서 좌표 하강법으로 적합하고
교차검증으로 λ를 선택합니다.

수학적 배경:
-----------
목적 함수 (표준화된 피처 Z, 중심화된 반응 y_c):
    (1/2n) * Σ(y_i - z_iβ)² + λ * [(1-α)/2 * Σβ_j² + α * Σ|β_j|]

    α = 0: Ridge,  α = 1: LASSO,  0 < α < 1: Elastic-Net

좌표별 갱신 (Z_j의 분산 = 1):
    ρ_j = (1/n) * Z_jᵀ r + β_j          (r = 현재 잔차, 부분 잔차의 내적)
    β_j ← S(ρ_j, λα) / (1 + λ(1-α))

소프트 임계값:
    S(z, t) = sign(z) * max(|z| - t, 0)

λ 경로:
    λ_max = max_j |Z_jᵀ y_c| / (n * max(α, 0.001))    (모든 계수가 0이 되는 최소 λ)
    λ_min = λ_max * ratio,  로그 등간격 n_lambda개

웜 스타트:
    큰 λ부터 작은 λ 순서로 풀고, 각 λ는 직전 λ의 해에서 시작.
    이 의존성 때문에 경로 적합은 순차적이며, 병렬화는 CV 폴드 단위로만 합니다.

계수 역변환:
    β_j(원래 단위) = β_j(표준화) / s_j,   β_0 = ȳ - Σ β_j x̄_j

Author: ML From Scratch Project
"""

import warnings
from dataclasses import dataclass
from typing import Optional, List, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error

from .cross_validation import CVConfig, CVResult, run_folds
from .dataset import Dataset
from .exceptions import DegenerateInput, InvalidModelSpec, NonConvergence

LOSSES = ('mse', 'mae')
RULES = ('min', '1se')


def soft_threshold(z: float, t: float) -> float:
    """S(z, t) = sign(z) * max(|z| - t, 0)"""
    if z > t:
        return z - t
    if z < -t:
        return z + t
    return 0.0


def _as_matrix(X: np.ndarray, n_features: int) -> np.ndarray:
    X = np.asarray(X, dtype=float)
    if X.ndim == 1:
        X = X.reshape(1, -1)
    if X.shape[1] != n_features:
        raise DegenerateInput(
            f"피처 수가 일치하지 않습니다: {X.shape[1]} vs {n_features}"
        )
    return X


@dataclass(frozen=True, eq=False)
class RegularizedLinearModel:
    """하나의 λ에서 적합된 모델 (원래 피처 단위)"""
    lambda_: float
    alpha: float
    coef: np.ndarray
    intercept: float
    feature_names: Tuple[str, ...]
    rss: float
    r2: float
    n_iter: int
    converged: bool

    @property
    def df(self) -> int:
        """0이 아닌 계수 수"""
        return int(np.count_nonzero(self.coef))

    def predict(self, X: np.ndarray) -> np.ndarray:
        X = _as_matrix(X, len(self.coef))
        return self.intercept + X @ self.coef

    def coef_series(self) -> pd.Series:
        return pd.Series(self.coef, index=list(self.feature_names), name=f"lambda={self.lambda_:.4g}")

    def __repr__(self) -> str:
        return (
            f"RegularizedLinearModel(lambda={self.lambda_:.4g}, alpha={self.alpha}, "
            f"df={self.df}, converged={self.converged})"
        )


class RegularizedPath:
    """
    λ 경로 위의 모델 시퀀스 (큰 λ → 작은 λ 순서)

    시퀀스처럼 인덱싱하면 RegularizedLinearModel을 돌려줍니다.
    """

    def __init__(self, models: Sequence[RegularizedLinearModel]):
        self._models = tuple(models)
        if not self._models:
            raise DegenerateInput("빈 경로입니다.")

        self.lambdas = np.array([m.lambda_ for m in self._models])
        self.coefs = np.vstack([m.coef for m in self._models])
        self.intercepts = np.array([m.intercept for m in self._models])
        for arr in (self.lambdas, self.coefs, self.intercepts):
            arr.setflags(write=False)

        self.alpha = self._models[0].alpha
        self.feature_names = self._models[0].feature_names

    def __len__(self) -> int:
        return len(self._models)

    def __getitem__(self, idx: int) -> RegularizedLinearModel:
        return self._models[idx]

    def __iter__(self):
        return iter(self._models)

    @property
    def models(self) -> Tuple[RegularizedLinearModel, ...]:
        return self._models

    @property
    def df(self) -> np.ndarray:
        return np.array([m.df for m in self._models])

    @property
    def converged(self) -> np.ndarray:
        return np.array([m.converged for m in self._models])

    def predict(self, X: np.ndarray) -> np.ndarray:
        """모든 λ에 대한 예측 (n_samples × n_lambda)"""
        X = _as_matrix(X, self.coefs.shape[1])
        return self.intercepts[None, :] + X @ self.coefs.T

    def model_at(self, lambda_: float) -> RegularizedLinearModel:
        """경로에서 가장 가까운 λ의 모델 (로그 척도 기준)"""
        lam = np.maximum(self.lambdas, 1e-300)
        idx = int(np.argmin(np.abs(np.log(lam) - np.log(max(lambda_, 1e-300)))))
        return self._models[idx]

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(self.coefs, columns=list(self.feature_names))
        df.insert(0, 'intercept', self.intercepts)
        df.insert(0, 'df', self.df)
        df.insert(0, 'lambda', self.lambdas)
        df['r2'] = [m.r2 for m in self._models]
        df['converged'] = self.converged
        return df

    def __repr__(self) -> str:
        return (
            f"RegularizedPath(n_lambda={len(self)}, alpha={self.alpha}, "
            f"lambda=[{self.lambdas[0]:.4g} .. {self.lambdas[-1]:.4g}])"
        )


@dataclass(frozen=True, eq=False)
class CVRegularizedModel:
    """교차검증으로 λ를 선택한 모델 (cv.glmnet 결과에 해당)"""
    path: RegularizedPath
    cv: CVResult
    lambda_min: float
    lambda_1se: float
    rule: str
    model: RegularizedLinearModel

    @property
    def lambda_(self) -> float:
        return self.model.lambda_

    def predict(self, X: np.ndarray) -> np.ndarray:
        return self.model.predict(X)


class RegularizedLinearSolver:
    """
    Elastic-Net 회귀 풀이기 (From Scratch)

    Parameters
    ----------
    alpha : float, default=1.0
        ℓ1/ℓ2 혼합 비율. 0이면 Ridge, 1이면 LASSO

    n_lambda : int, default=100
        자동 생성 λ 경로의 길이

    lambda_min_ratio : float, optional
        λ_min / λ_max. None이면 n > p일 때 1e-4, 아니면 1e-2

    tol : float, default=1e-7
        한 사이클 동안 표준화 계수의 최대 변화량에 대한 수렴 허용오차

    max_iter : int, default=10000
        λ 하나당 최대 좌표 하강 사이클 수.
        도달하면 NonConvergence 경고 후 현재 해를 반환 (converged=False)

    cv : CVConfig, optional
        교차검증 설정 (폴드 수, 반복 수, 시드, 병렬 작업 수)

    verbose : int, default=0
        출력 수준 (0: 없음, 1: 경로 요약, 2: λ별 진행)

    Examples
    --------
    >>> solver = RegularizedLinearSolver(alpha=1.0)
    >>> path = solver.fit_path(dataset)
    >>> cv_result = solver.cross_validate(dataset, lambdas=path.lambdas, folds=5)
    >>> lam = solver.select_lambda(cv_result, rule='1se')
    """

    def __init__(
        self,
        alpha: float = 1.0,
        n_lambda: int = 100,
        lambda_min_ratio: Optional[float] = None,
        tol: float = 1e-7,
        max_iter: int = 10000,
        cv: Optional[CVConfig] = None,
        verbose: int = 0
    ):
        if not 0.0 <= alpha <= 1.0:
            raise InvalidModelSpec(f"alpha는 [0, 1] 범위여야 합니다: {alpha}")
        if n_lambda < 1:
            raise InvalidModelSpec(f"n_lambda는 1 이상이어야 합니다: {n_lambda}")

        self.alpha = float(alpha)
        self.n_lambda = n_lambda
        self.lambda_min_ratio = lambda_min_ratio
        self.tol = tol
        self.max_iter = max_iter
        self.cv = cv or CVConfig()
        self.verbose = verbose

    def _standardize(
        self,
        X: np.ndarray,
        allow_constant: bool = False
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        피처 표준화 (평균 0, 모분산 1)

        allow_constant=True이면 분산이 0인 컬럼을 예외 대신 0 컬럼으로 두고
        active 마스크에서 제외합니다 (CV 학습 폴드용).

        Returns
        -------
        Z, means, scales, active

        Raises
        ------
        DegenerateInput
            분산이 0인 피처가 있고 allow_constant=False인 경우
        """
        means = X.mean(axis=0)
        scales = X.std(axis=0)
        const = scales <= 1e-12 * np.maximum(np.abs(means), 1.0)
        if np.any(const) and not allow_constant:
            raise DegenerateInput(
                f"분산이 0인 피처는 표준화할 수 없습니다: 컬럼 {np.where(const)[0].tolist()}"
            )
        scales = np.where(const, 1.0, scales)
        Z = (X - means) / scales
        Z[:, const] = 0.0
        return Z, means, scales, ~const

    def lambda_sequence(self, dataset: Dataset) -> np.ndarray:
        """데이터에서 λ_max를 계산하고 로그 등간격 경로 생성 (내림차순)"""
        y = dataset.regression_target()
        Z, _, _, _ = self._standardize(dataset.X)
        return self._lambda_sequence(Z, y - y.mean())

    def _lambda_sequence(self, Z: np.ndarray, y_c: np.ndarray) -> np.ndarray:
        n, p = Z.shape
        lambda_max = np.max(np.abs(Z.T @ y_c)) / (n * max(self.alpha, 1e-3))
        if lambda_max <= 0:
            lambda_max = 1.0

        ratio = self.lambda_min_ratio
        if ratio is None:
            ratio = 1e-4 if n > p else 1e-2

        if self.n_lambda == 1:
            return np.array([lambda_max])
        return np.logspace(
            np.log10(lambda_max), np.log10(lambda_max * ratio), self.n_lambda
        )

    def _check_lambdas(self, lambdas: Sequence[float]) -> np.ndarray:
        lambdas = np.asarray(lambdas, dtype=float).ravel()
        if lambdas.size == 0:
            raise InvalidModelSpec("λ 시퀀스가 비어 있습니다.")
        if np.any(~np.isfinite(lambdas)) or np.any(lambdas < 0):
            raise InvalidModelSpec("λ는 0 이상의 유한한 값이어야 합니다.")
        # 웜 스타트를 위해 큰 λ부터
        return np.sort(lambdas)[::-1]

    def _coordinate_descent(
        self,
        Z: np.ndarray,
        y_c: np.ndarray,
        lam: float,
        beta: np.ndarray,
        active: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, int, bool]:
        """
        하나의 λ에 대한 순환 좌표 하강

        beta는 웜 스타트 초기값이며 복사본을 갱신해 반환합니다.
        active에 없는 좌표는 갱신하지 않습니다 (계수 0 고정).
        """
        n, p = Z.shape
        coords = range(p) if active is None else np.flatnonzero(active)
        beta = beta.copy()
        residual = y_c - Z @ beta

        l1 = lam * self.alpha
        shrink = 1.0 + lam * (1.0 - self.alpha)

        for it in range(1, self.max_iter + 1):
            max_change = 0.0

            for j in coords:
                old = beta[j]
                rho = Z[:, j] @ residual / n + old
                new = soft_threshold(rho, l1) / shrink

                if new != old:
                    residual -= Z[:, j] * (new - old)
                    beta[j] = new
                    max_change = max(max_change, abs(new - old))

            if max_change < self.tol:
                return beta, it, True

        return beta, self.max_iter, False

    def fit_path(
        self,
        dataset: Dataset,
        lambdas: Optional[Sequence[float]] = None
    ) -> RegularizedPath:
        """
        λ 경로 전체를 웜 스타트로 적합

        Parameters
        ----------
        dataset : Dataset
            학습 데이터 (수치형 반응)
        lambdas : sequence of float, optional
            λ 시퀀스. None이면 lambda_sequence()로 생성.
            순서와 무관하게 큰 값부터 적합합니다.

        Returns
        -------
        path : RegularizedPath
            λ별 모델 (원래 피처 단위 계수)
        """
        return self._fit_path(dataset, lambdas)

    def _fit_path(
        self,
        dataset: Dataset,
        lambdas: Optional[Sequence[float]],
        allow_constant: bool = False
    ) -> RegularizedPath:
        y = dataset.regression_target()
        Z, means, scales, active = self._standardize(dataset.X, allow_constant)
        y_mean = y.mean()
        y_c = y - y_mean
        tss = float(y_c @ y_c)

        if lambdas is None:
            lambdas = self._lambda_sequence(Z, y_c)
        lambdas = self._check_lambdas(lambdas)

        n, p = Z.shape
        beta = np.zeros(p)
        models: List[RegularizedLinearModel] = []
        not_converged = []

        for k, lam in enumerate(lambdas):
            beta, n_iter, converged = self._coordinate_descent(
                Z, y_c, lam, beta, active
            )
            if not converged:
                not_converged.append(lam)

            resid = y_c - Z @ beta
            rss = float(resid @ resid)

            coef = beta / scales
            coef.setflags(write=False)
            intercept = float(y_mean - means @ coef)

            models.append(RegularizedLinearModel(
                lambda_=float(lam),
                alpha=self.alpha,
                coef=coef,
                intercept=intercept,
                feature_names=dataset.feature_names,
                rss=rss,
                r2=1.0 - rss / tss if tss > 0 else 0.0,
                n_iter=n_iter,
                converged=converged
            ))

            if self.verbose > 1:
                print(f"λ[{k + 1}/{len(lambdas)}]={lam:.4g}, "
                      f"df={models[-1].df}, 반복={n_iter}")

        if not_converged:
            warnings.warn(
                f"{len(not_converged)}개의 λ에서 좌표 하강이 {self.max_iter} 사이클 내에 "
                f"수렴하지 않았습니다 (예: λ={not_converged[0]:.4g}).",
                NonConvergence
            )

        path = RegularizedPath(models)
        if self.verbose > 0:
            print(f"경로 적합 완료: {path}")
        return path

    def _fold_errors(
        self,
        dataset: Dataset,
        lambdas: np.ndarray,
        loss: str,
        train_idx: np.ndarray,
        test_idx: np.ndarray
    ) -> np.ndarray:
        """
        한 폴드: 학습 폴드로 경로를 적합하고 λ별 홀드아웃 오차 계산

        전체 데이터에서는 분산이 있지만 학습 폴드 안에서 상수인 컬럼은
        해당 폴드에서 계수를 0으로 고정합니다.
        """
        path = self._fit_path(dataset.take(train_idx), lambdas, allow_constant=True)
        X_test = dataset.X[test_idx]
        y_test = dataset.regression_target()[test_idx]

        pred = path.predict(X_test)
        y_rep = np.repeat(y_test[:, None], pred.shape[1], axis=1)
        metric = mean_squared_error if loss == 'mse' else mean_absolute_error
        return metric(y_rep, pred, multioutput='raw_values')

    def cross_validate(
        self,
        dataset: Dataset,
        lambdas: Optional[Sequence[float]] = None,
        folds: Optional[int] = None,
        repeats: Optional[int] = None,
        loss: str = 'mse'
    ) -> CVResult:
        """
        반복 K-겹 교차검증으로 λ별 오차 곡선 계산

        λ 시퀀스는 전체 데이터에서 한 번 정하고 모든 폴드가 공유합니다.
        각 폴드는 학습 부분에서 경로 전체를 다시 적합합니다 (웜 스타트 유지).

        Returns
        -------
        cv_result : CVResult
            params = [{'lambda': λ}, ...] (내림차순), errors = (runs × n_lambda)
        """
        if loss not in LOSSES:
            raise InvalidModelSpec(f"알 수 없는 손실: {loss} (가능: {LOSSES})")

        if lambdas is None:
            lambdas = self.lambda_sequence(dataset)
        lambdas = self._check_lambdas(lambdas)

        cfg = CVConfig(
            n_splits=folds if folds is not None else self.cv.n_splits,
            n_repeats=repeats if repeats is not None else self.cv.n_repeats,
            shuffle=self.cv.shuffle,
            random_state=self.cv.random_state,
            stratify=False,
            n_jobs=self.cv.n_jobs,
            parallel_backend=self.cv.parallel_backend
        )

        if self.verbose > 0:
            print(f"교차검증: {cfg.n_splits}겹 × {cfg.n_repeats}회, λ {len(lambdas)}개")

        errors = run_folds(
            lambda tr, te: self._fold_errors(dataset, lambdas, loss, tr, te),
            dataset.y,
            cfg
        )

        return CVResult(
            params=tuple({'lambda': float(lam)} for lam in lambdas),
            errors=errors,
            loss=loss
        )

    def select_lambda(self, cv_result: CVResult, rule: str = 'min') -> float:
        """
        교차검증 결과에서 λ 선택

        - 'min': 평균 오차가 최소인 λ (동률이면 가장 큰 λ)
        - '1se': 평균 오차 <= 최소 오차 + 최소점의 표준오차 를 만족하는
                 λ 중 가장 큰 λ (가장 강하게 정규화된 단순한 모델)

        '1se'로 고른 λ는 항상 'min'으로 고른 λ 이상입니다.
        """
        if rule not in RULES:
            raise InvalidModelSpec(f"알 수 없는 규칙: {rule} (가능: {RULES})")

        lambdas = cv_result.param_values('lambda')
        mean = cv_result.mean
        se = cv_result.std_error

        min_err = np.min(mean)
        at_min = np.where(mean <= min_err)[0]
        idx_min = at_min[np.argmax(lambdas[at_min])]

        if rule == 'min':
            return float(lambdas[idx_min])

        threshold = mean[idx_min] + se[idx_min]
        eligible = np.where(mean <= threshold)[0]
        return float(np.max(lambdas[eligible]))

    def fit_cv(
        self,
        dataset: Dataset,
        lambdas: Optional[Sequence[float]] = None,
        rule: str = '1se',
        loss: str = 'mse'
    ) -> CVRegularizedModel:
        """경로 적합 + 교차검증 + λ 선택을 한 번에 수행"""
        if rule not in RULES:
            raise InvalidModelSpec(f"알 수 없는 규칙: {rule} (가능: {RULES})")

        path = self.fit_path(dataset, lambdas)
        cv_result = self.cross_validate(dataset, lambdas=path.lambdas, loss=loss)

        lambda_min = self.select_lambda(cv_result, 'min')
        lambda_1se = self.select_lambda(cv_result, '1se')
        chosen = lambda_min if rule == 'min' else lambda_1se

        idx = int(np.argmin(np.abs(path.lambdas - chosen)))

        if self.verbose > 0:
            print(f"λ_min={lambda_min:.4g}, λ_1se={lambda_1se:.4g}, 선택={chosen:.4g}")

        return CVRegularizedModel(
            path=path,
            cv=cv_result.with_choice(idx),
            lambda_min=lambda_min,
            lambda_1se=lambda_1se,
            rule=rule,
            model=path[idx]
        )

    def __repr__(self) -> str:
        return (
            f"RegularizedLinearSolver(alpha={self.alpha}, "
            f"n_lambda={self.n_lambda}, tol={self.tol})"
        )
