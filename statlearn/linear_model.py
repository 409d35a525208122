"""
Linear Model Selector - 정보 기준 기반 모델 선택
===============================================

선형 모델을 최소제곱으로 적합하고 AIC/BIC/수정 R²로 점수를 매긴 뒤,
단계적(stepwise) 탐색으로 피처 부분집합을 선택합니다.

수학적 배경:
-----------
OLS 적합 (절편 포함, 계수 q개):
    β̂ = argmin ||y - Dβ||²,   D = [1, X_S]

잔차제곱합과 분산의 최대우도추정:
    RSS = Σ(y_i - ŷ_i)²,   σ̂² = RSS / n

로그우도 (2π 항 포함 규약):
    logLik = -(n/2) * (log(2π σ̂²) + 1)

정보 기준 (k = q + 1, 분산 모수 포함):
    AIC = -2 logLik + 2k
    BIC = -2 logLik + k log(n)

수정 R²:
    adjR² = 1 - (RSS / (n - q)) / (TSS / (n - 1))

절댓값은 규약에 따라 달라지므로 같은 반응변수, 같은 관측치 집합에
적합된 모델 사이의 차이만 의미가 있습니다.

단계적 탐색:
-----------
- forward: 후보 중 추가했을 때 기준값이 가장 작은 피처를 추가
- backward: 제거했을 때 기준값이 가장 작은 피처를 제거 (floor까지)
- both: forward 한 단계, backward 한 단계를 번갈아 수행

Author: ML From Scratch Project
"""

import itertools
import warnings
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Tuple, Sequence

import numpy as np
import pandas as pd

from .dataset import Dataset, ResponseKey
from .exceptions import DegenerateInput, InvalidModelSpec

CRITERIA = ('aic', 'bic', 'adjr2')
DIRECTIONS = ('forward', 'backward', 'both')


@dataclass(frozen=True, eq=False)
class ModelScore:
    """하나의 피처 부분집합에 대한 OLS 적합 결과와 정보 기준"""
    features: Tuple[str, ...]
    n: int
    n_params: int            # 평균 모형 계수 수 (절편 포함)
    rss: float
    tss: float
    log_likelihood: float
    aic: float
    bic: float
    r2: float
    adj_r2: float
    intercept: float
    coef: np.ndarray
    response_key: ResponseKey

    def criterion(self, name: str) -> float:
        """최소화할 기준값 (수정 R²는 부호를 바꿔 반환)"""
        name = _normalize_criterion(name)
        if name == 'aic':
            return self.aic
        if name == 'bic':
            return self.bic
        return -self.adj_r2

    def predict(self, X: np.ndarray) -> np.ndarray:
        X = np.asarray(X, dtype=float)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.shape[1] != len(self.features):
            raise DegenerateInput(
                f"피처 수가 일치하지 않습니다: {X.shape[1]} vs {len(self.features)}"
            )
        return self.intercept + X @ self.coef

    def __repr__(self) -> str:
        return (
            f"ModelScore(features={list(self.features)}, "
            f"AIC={self.aic:.3f}, BIC={self.bic:.3f}, adjR2={self.adj_r2:.4f})"
        )


@dataclass(frozen=True)
class StepwiseStep:
    """단계적 탐색의 한 단계"""
    features: Tuple[str, ...]
    criterion_value: float
    action: str                  # 'start', 'add', 'drop'
    feature: Optional[str] = None


@dataclass(frozen=True)
class StepwiseResult:
    trace: Tuple[StepwiseStep, ...]
    direction: str
    criterion: str
    converged: bool
    cycle_detected: bool = False
    skipped: Tuple[str, ...] = field(default=())

    @property
    def best(self) -> Tuple[str, ...]:
        return self.trace[-1].features

    @property
    def best_value(self) -> float:
        return self.trace[-1].criterion_value

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {
                'step': i,
                'action': s.action,
                'feature': s.feature,
                'features': ' + '.join(s.features) if s.features else '(intercept)',
                self.criterion: s.criterion_value
            }
            for i, s in enumerate(self.trace)
        ])


@dataclass(frozen=True)
class BestSubsetResult:
    """크기별 최적 부분집합 (RSS 기준)과 전체 최적 모델 (정보 기준)"""
    per_size: Tuple[ModelScore, ...]
    best: ModelScore
    criterion: str

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {
                'size': len(s.features),
                'features': ' + '.join(s.features) if s.features else '(intercept)',
                'rss': s.rss,
                'aic': s.aic,
                'bic': s.bic,
                'adj_r2': s.adj_r2,
                'best': s is self.best
            }
            for s in self.per_size
        ])


def _normalize_criterion(name: str) -> str:
    key = str(name).lower().replace('_', '')
    if key not in CRITERIA:
        raise InvalidModelSpec(f"알 수 없는 기준: {name} (가능: {CRITERIA})")
    return key


class LinearModelSelector:
    """
    정보 기준 기반 선형 모델 선택기

    Parameters
    ----------
    criterion : str, default='aic'
        'aic', 'bic', 'adjr2' 중 하나

    direction : str, default='both'
        단계적 탐색 방향 ('forward', 'backward', 'both')

    tie_eps : float, default=1e-8
        이 범위 안의 기준값은 동률로 보고 피처 이름 사전순으로 선택.
        개선으로 인정되려면 기준값이 tie_eps보다 많이 감소해야 합니다.

    max_steps : int, default=100
        최대 이동(추가/제거) 횟수

    verbose : int, default=0
        출력 수준 (0: 없음, 1: 단계별)

    Examples
    --------
    >>> selector = LinearModelSelector(criterion='bic')
    >>> result = selector.stepwise(dataset, direction='forward')
    >>> result.best
    ('x0', 'x1')
    """

    def __init__(
        self,
        criterion: str = 'aic',
        direction: str = 'both',
        tie_eps: float = 1e-8,
        max_steps: int = 100,
        verbose: int = 0
    ):
        self.criterion = _normalize_criterion(criterion)
        if direction not in DIRECTIONS:
            raise InvalidModelSpec(f"알 수 없는 방향: {direction}")
        self.direction = direction
        self.tie_eps = tie_eps
        self.max_steps = max_steps
        self.verbose = verbose

    def score(self, dataset: Dataset, features: Sequence[str]) -> ModelScore:
        """
        피처 부분집합으로 OLS를 적합하고 정보 기준 계산

        Raises
        ------
        DegenerateInput
            설계 행렬이 특이(rank 부족)하거나, 관측치가 계수보다 적거나,
            RSS가 0이어서 우도가 유계가 아닌 경우
        """
        features = tuple(features)
        idx = [dataset.feature_index(f) for f in features]
        y = dataset.regression_target()
        n = len(y)

        D = np.column_stack([np.ones(n), dataset.X[:, idx]])
        q = D.shape[1]

        if n <= q:
            raise DegenerateInput(
                f"관측치 수가 계수 수보다 많아야 합니다: n={n}, q={q}",
                reason='too_few'
            )

        beta, _, rank, _ = np.linalg.lstsq(D, y, rcond=None)
        if rank < q:
            raise DegenerateInput(
                f"설계 행렬이 특이합니다 (rank {rank} < {q}): {list(features)}",
                reason='singular'
            )

        residuals = y - D @ beta
        rss = float(residuals @ residuals)
        tss = float(np.sum((y - y.mean()) ** 2))

        if rss <= 1e-20 * max(tss, 1.0):
            raise DegenerateInput(
                "완전 적합(RSS=0): 로그우도가 유계가 아닙니다.", reason='perfect_fit'
            )

        # 2π 항을 포함한 가우시안 로그우도
        log_lik = -0.5 * n * (np.log(2 * np.pi * rss / n) + 1)
        k = q + 1
        aic = -2 * log_lik + 2 * k
        bic = -2 * log_lik + k * np.log(n)

        r2 = 1 - rss / tss if tss > 0 else 0.0
        adj_r2 = 1 - (rss / (n - q)) / (tss / (n - 1)) if tss > 0 else 0.0

        coef = np.asarray(beta[1:], dtype=float)
        coef.setflags(write=False)

        return ModelScore(
            features=features,
            n=n,
            n_params=q,
            rss=rss,
            tss=tss,
            log_likelihood=float(log_lik),
            aic=float(aic),
            bic=float(bic),
            r2=float(r2),
            adj_r2=float(adj_r2),
            intercept=float(beta[0]),
            coef=coef,
            response_key=dataset.response_key
        )

    def compare(self, a: ModelScore, b: ModelScore, criterion: Optional[str] = None) -> float:
        """
        두 모델의 기준값 차이 (a - b). 음수면 a가 더 좋음

        서로 다른 반응변수/변환/관측치 집합에 적합된 모델은 비교할 수 없습니다.
        """
        if a.response_key != b.response_key:
            raise InvalidModelSpec(
                "반응변수 또는 관측치 집합이 다른 모델은 비교할 수 없습니다: "
                f"{a.response_key.name}[{a.response_key.transform}] vs "
                f"{b.response_key.name}[{b.response_key.transform}]"
            )
        criterion = criterion or self.criterion
        return a.criterion(criterion) - b.criterion(criterion)

    def _canonical(self, dataset: Dataset, features) -> Tuple[str, ...]:
        """데이터셋 컬럼 순서로 정렬된 부분집합"""
        return tuple(sorted(set(features), key=dataset.feature_index))

    def stepwise(
        self,
        dataset: Dataset,
        initial: Optional[Sequence[str]] = None,
        candidates: Optional[Sequence[str]] = None,
        direction: Optional[str] = None,
        criterion: Optional[str] = None,
        floor: Sequence[str] = ()
    ) -> StepwiseResult:
        """
        단계적 모델 선택

        Parameters
        ----------
        dataset : Dataset
            학습 데이터
        initial : sequence of str, optional
            시작 부분집합. 기본값은 forward/both에서 절편만,
            backward에서 후보 전체
        candidates : sequence of str, optional
            후보 피처 풀 (기본값: 모든 피처)
        direction : str, optional
            'forward', 'backward', 'both'
        criterion : str, optional
            'aic', 'bic', 'adjr2'
        floor : sequence of str
            backward에서 제거하지 않는 하한 부분집합 (기본값: 절편만)

        Returns
        -------
        result : StepwiseResult
            시작 모델부터 최종 모델까지의 (부분집합, 기준값) 기록
        """
        direction = direction or self.direction
        if direction not in DIRECTIONS:
            raise InvalidModelSpec(f"알 수 없는 방향: {direction}")
        criterion = _normalize_criterion(criterion or self.criterion)

        if candidates is None:
            candidates = dataset.feature_names
        pool = self._canonical(dataset, candidates)

        if initial is None:
            initial = pool if direction == 'backward' else ()
        current = self._canonical(dataset, initial)
        floor = self._canonical(dataset, floor)

        if not set(floor) <= set(current):
            raise InvalidModelSpec(
                f"시작 모델이 floor를 포함해야 합니다: floor={list(floor)}"
            )

        cache: Dict[Tuple[str, ...], Optional[float]] = {}
        failures: Dict[Tuple[str, ...], Optional[str]] = {}
        skipped: List[str] = []
        unscorable: List[str] = []

        def evaluate(subset: Tuple[str, ...]) -> Optional[float]:
            if subset not in cache:
                try:
                    cache[subset] = self.score(dataset, subset).criterion(criterion)
                except DegenerateInput as exc:
                    cache[subset] = None
                    failures[subset] = exc.reason
            return cache[subset]

        current_value = evaluate(current)
        if current_value is None:
            raise DegenerateInput(f"시작 모델을 적합할 수 없습니다: {list(current)}")

        trace = [StepwiseStep(current, current_value, 'start')]
        visited = {frozenset(current)}
        kinds = {'forward': ('add',), 'backward': ('drop',), 'both': ('add', 'drop')}[direction]

        if self.verbose > 0:
            print(f"Start: {criterion.upper()}={current_value:.4f}  {list(current)}")

        n_steps = 0
        cycle_detected = False
        stopped = False

        while n_steps < self.max_steps:
            changed = False

            for kind in kinds:
                if kind == 'add':
                    moves = [(f, self._canonical(dataset, current + (f,)))
                             for f in pool if f not in current]
                else:
                    moves = [(f, tuple(c for c in current if c != f))
                             for f in current if f not in floor]

                scored = []
                for feature, subset in moves:
                    value = evaluate(subset)
                    if value is None:
                        # 평가할 수 없는 후보는 선택하지 않음
                        if kind == 'add' and failures.get(subset) == 'singular':
                            if feature not in skipped:
                                skipped.append(feature)
                        elif feature not in unscorable:
                            unscorable.append(feature)
                        continue
                    scored.append((value, feature, subset))

                if not scored:
                    continue

                best_value = min(v for v, _, _ in scored)
                ties = [m for m in scored if m[0] <= best_value + self.tie_eps]
                value, feature, subset = min(ties, key=lambda m: m[1])

                if value >= current_value - self.tie_eps:
                    continue

                key = frozenset(subset)
                if key in visited:
                    cycle_detected = True
                    warnings.warn(
                        f"단계적 탐색에서 부분집합이 반복되었습니다: {list(subset)}",
                        UserWarning
                    )
                    break

                visited.add(key)
                current, current_value = subset, value
                trace.append(StepwiseStep(current, current_value, kind, feature))
                changed = True
                n_steps += 1

                if self.verbose > 0:
                    sign = '+' if kind == 'add' else '-'
                    print(f"Step {n_steps}: {sign} {feature}, "
                          f"{criterion.upper()}={current_value:.4f}")

                if n_steps >= self.max_steps:
                    break

            if cycle_detected or not changed:
                stopped = not cycle_detected
                break

        if skipped:
            warnings.warn(
                f"특이 설계로 건너뛴 후보: {skipped}",
                UserWarning
            )
        if unscorable:
            warnings.warn(
                f"완전 적합 또는 관측치 부족으로 평가할 수 없는 후보: {unscorable}",
                UserWarning
            )

        return StepwiseResult(
            trace=tuple(trace),
            direction=direction,
            criterion=criterion,
            converged=stopped,
            cycle_detected=cycle_detected,
            skipped=tuple(skipped)
        )

    def best_subset(
        self,
        dataset: Dataset,
        candidates: Optional[Sequence[str]] = None,
        max_size: Optional[int] = None,
        criterion: Optional[str] = None
    ) -> BestSubsetResult:
        """
        전역 부분집합 탐색

        크기 s = 0..max_size 각각에서 RSS가 가장 작은 부분집합을 찾고,
        그중 정보 기준이 가장 작은 모델을 반환합니다. 2^p개의 모델을
        적합하므로 피처 수가 적을 때만 사용하세요.
        """
        criterion = _normalize_criterion(criterion or self.criterion)
        if candidates is None:
            candidates = dataset.feature_names
        pool = self._canonical(dataset, candidates)
        if max_size is None:
            max_size = len(pool)
        max_size = min(max_size, len(pool))

        per_size: List[ModelScore] = []
        for size in range(max_size + 1):
            best_for_size: Optional[ModelScore] = None
            for subset in itertools.combinations(pool, size):
                try:
                    s = self.score(dataset, subset)
                except DegenerateInput:
                    continue
                if best_for_size is None or s.rss < best_for_size.rss:
                    best_for_size = s
            if best_for_size is not None:
                per_size.append(best_for_size)

            if self.verbose > 0 and best_for_size is not None:
                print(f"크기 {size}: {list(best_for_size.features)}, "
                      f"RSS={best_for_size.rss:.4f}")

        if not per_size:
            raise DegenerateInput("적합 가능한 부분집합이 없습니다.")

        # 동률이면 더 작은 모델 (앞쪽)
        best = min(per_size, key=lambda s: s.criterion(criterion))

        return BestSubsetResult(
            per_size=tuple(per_size),
            best=best,
            criterion=criterion
        )

    def __repr__(self) -> str:
        return (
            f"LinearModelSelector(criterion='{self.criterion}', "
            f"direction='{self.direction}')"
        )
