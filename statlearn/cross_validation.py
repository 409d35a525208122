"""
Cross-Validation - 반복 K-겹 교차검증
====================================

관측치 인덱스를 k개의 서로소 그룹으로 분할하고, 반복(repeat)마다
독립적으로 다시 섞습니다. 각 (반복, 폴드) 실행은 서로 독립이므로
joblib으로 병렬 실행할 수 있으며, 모든 실행이 끝난 뒤에
평균과 표준오차로 집계(reduction)합니다.

수학적 배경:
-----------
R = folds × repeats 개의 실행에서 그리드 점 g의 오차 e_rg에 대해:

    CV(g) = (1/R) * Σ_r e_rg
    SE(g) = sd(e_·g) / sqrt(R)

Author: ML From Scratch Project
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.model_selection import (
    KFold,
    RepeatedKFold,
    RepeatedStratifiedKFold,
    StratifiedKFold,
)

from .exceptions import DegenerateInput, InvalidModelSpec


@dataclass(frozen=True)
class CVConfig:
    """
    교차검증 설정

    shuffle=False는 n_repeats=1에서만 허용됩니다 (반복은 매번 다시 섞음).
    """
    n_splits: int = 10
    n_repeats: int = 1
    shuffle: bool = True
    random_state: Optional[int] = 42
    stratify: bool = False
    n_jobs: int = 1
    parallel_backend: str = 'threads'


def make_cv_splitter(cfg: CVConfig):
    """설정에 맞는 sklearn 분할기 생성"""
    if cfg.n_splits < 2:
        raise DegenerateInput(f"n_splits는 2 이상이어야 합니다: {cfg.n_splits}")
    if cfg.n_repeats > 1 and not cfg.shuffle:
        raise InvalidModelSpec(
            f"반복 교차검증은 매 반복 다시 섞어야 합니다: shuffle=False, n_repeats={cfg.n_repeats}"
        )

    # 섞지 않는 단일 반복은 순서대로 분할
    if cfg.n_repeats == 1 and not cfg.shuffle:
        if cfg.stratify:
            return StratifiedKFold(n_splits=cfg.n_splits)
        return KFold(n_splits=cfg.n_splits)

    if cfg.stratify:
        return RepeatedStratifiedKFold(
            n_splits=cfg.n_splits,
            n_repeats=cfg.n_repeats,
            random_state=cfg.random_state
        )

    return RepeatedKFold(
        n_splits=cfg.n_splits,
        n_repeats=cfg.n_repeats,
        random_state=cfg.random_state
    )


def iter_cv_folds(
    y: np.ndarray,
    cfg: CVConfig
) -> Iterator[Tuple[int, np.ndarray, np.ndarray]]:
    """
    (run_idx, train_idx, test_idx) 생성

    run_idx는 1부터 시작하며 반복 전체에 걸쳐 증가합니다.
    """
    y = np.asarray(y)
    n = len(y)
    if cfg.n_splits > n:
        raise DegenerateInput(
            f"폴드 수가 관측치 수보다 많습니다: {cfg.n_splits} > {n}"
        )

    splitter = make_cv_splitter(cfg)
    X_dummy = np.zeros(n)

    split_iter = splitter.split(X_dummy, y) if cfg.stratify else splitter.split(X_dummy)

    for run_idx, (train_idx, test_idx) in enumerate(split_iter, start=1):
        yield run_idx, train_idx, test_idx


def run_folds(
    fn: Callable[[np.ndarray, np.ndarray], np.ndarray],
    y: np.ndarray,
    cfg: CVConfig
) -> np.ndarray:
    """
    각 폴드에서 fn(train_idx, test_idx)를 실행하고 (runs × grid) 행렬로 결합

    fn은 그리드 점마다 하나의 홀드아웃 오차를 담은 1차원 배열을 반환해야 합니다.
    """
    folds = list(iter_cv_folds(y, cfg))

    results = Parallel(n_jobs=cfg.n_jobs, prefer=cfg.parallel_backend)(
        delayed(fn)(train_idx, test_idx) for _, train_idx, test_idx in folds
    )

    return np.vstack([np.atleast_1d(np.asarray(r, dtype=float)) for r in results])


@dataclass(frozen=True, eq=False)
class CVResult:
    """
    그리드 점별 교차검증 결과

    Attributes
    ----------
    params : tuple of dict
        그리드 점 (예: {'lambda': 0.1} 또는 {'cost': 1.0, 'gamma': 0.5})

    errors : ndarray of shape (n_runs, n_grid)
        실행별 홀드아웃 오차

    chosen_index : int, optional
        선택 규칙이 고른 그리드 점
    """
    params: Tuple[Dict[str, Any], ...]
    errors: np.ndarray
    chosen_index: Optional[int] = None
    loss: str = 'mse'
    param_names: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        errors = np.atleast_2d(np.array(self.errors, dtype=float))
        if errors.shape[1] != len(self.params):
            raise DegenerateInput(
                f"오차 행렬 열 수와 그리드 크기가 다릅니다: "
                f"{errors.shape[1]} vs {len(self.params)}"
            )
        errors.setflags(write=False)
        object.__setattr__(self, 'errors', errors)
        object.__setattr__(self, 'params', tuple(dict(p) for p in self.params))
        if not self.param_names and self.params:
            object.__setattr__(self, 'param_names', tuple(self.params[0].keys()))

    @property
    def n_runs(self) -> int:
        return self.errors.shape[0]

    @property
    def mean(self) -> np.ndarray:
        return self.errors.mean(axis=0)

    @property
    def std_error(self) -> np.ndarray:
        if self.n_runs < 2:
            return np.zeros(self.errors.shape[1])
        return self.errors.std(axis=0, ddof=1) / np.sqrt(self.n_runs)

    @property
    def best_index(self) -> int:
        """평균 오차가 최소인 첫 번째 그리드 점"""
        return int(np.argmin(self.mean))

    def param_values(self, name: str) -> np.ndarray:
        return np.array(
            [np.nan if p[name] is None else p[name] for p in self.params],
            dtype=float
        )

    def with_choice(self, index: int) -> 'CVResult':
        """선택 표시가 붙은 새 결과 (원본은 변경하지 않음)"""
        return CVResult(
            params=self.params,
            errors=self.errors,
            chosen_index=int(index),
            loss=self.loss,
            param_names=self.param_names
        )

    def to_frame(self) -> pd.DataFrame:
        """그리드 점별 평균 오차, 표준오차, 선택 여부 표"""
        df = pd.DataFrame(list(self.params), columns=list(self.param_names))
        df['mean_error'] = self.mean
        df['std_error'] = self.std_error
        chosen = np.zeros(len(self.params), dtype=bool)
        if self.chosen_index is not None:
            chosen[self.chosen_index] = True
        df['chosen'] = chosen
        return df

    def __repr__(self) -> str:
        return (
            f"CVResult(n_grid={len(self.params)}, n_runs={self.n_runs}, "
            f"loss='{self.loss}', best_mean={self.mean[self.best_index]:.4f})"
        )


def grid_product(
    names: Sequence[str],
    values: Sequence[Sequence[Any]]
) -> List[Dict[str, Any]]:
    """직교 그리드 (앞쪽 이름이 바깥 루프)"""
    grid: List[Dict[str, Any]] = [{}]
    for name, vals in zip(names, values):
        grid = [dict(g, **{name: v}) for g in grid for v in vals]
    return grid
