"""
Dataset - 불변 학습 데이터 컨테이너
==================================

n개의 관측치, 각 관측치는 길이 p의 수치 피처 벡터와 반응값을 가집니다.

불변 조건:
---------
- 모든 관측치는 같은 피처 차원을 공유
- 결측값(NaN)과 무한대(Inf)는 생성 시점에 거부
- 생성 이후 배열은 읽기 전용 (모든 컴포넌트가 공유해도 안전)

Author: ML From Scratch Project
"""

import hashlib
from dataclasses import dataclass, field
from typing import Optional, List, Sequence, Tuple, Any

import numpy as np
import pandas as pd

from .exceptions import DegenerateInput, InvalidModelSpec


@dataclass(frozen=True)
class ResponseKey:
    """모델 비교 가능성을 판단하는 반응변수 식별자"""
    name: str
    transform: str
    n_samples: int
    fingerprint: str


@dataclass(frozen=True, eq=False)
class Dataset:
    """
    학습 데이터셋

    Parameters
    ----------
    X : array-like of shape (n_samples, n_features)
        수치 피처 행렬

    y : array-like of shape (n_samples,)
        반응값 (회귀: 실수, 분류: 범주형 레이블)

    feature_names : sequence of str, optional
        피처 이름. None이면 x0, x1, ...

    response_name : str, default='y'
        반응변수 이름

    response_transform : str, default='identity'
        반응변수 변환 태그 (예: 'identity', 'log').
        변환이 다른 모델끼리는 AIC/BIC를 비교할 수 없습니다.

    Examples
    --------
    >>> import numpy as np
    >>> from statlearn import Dataset
    >>> ds = Dataset(np.array([[1.0], [2.0], [3.0]]), np.array([2.0, 4.0, 6.1]))
    >>> ds.n_samples, ds.n_features
    (3, 1)
    """

    X: np.ndarray
    y: np.ndarray
    feature_names: Tuple[str, ...] = field(default=())
    response_name: str = 'y'
    response_transform: str = 'identity'

    def __post_init__(self):
        X = np.array(self.X, dtype=float, copy=True)
        y = np.array(self.y, copy=True)

        if X.ndim == 1:
            X = X.reshape(-1, 1)
        if X.ndim != 2:
            raise DegenerateInput(f"X는 2차원이어야 합니다: ndim={X.ndim}")
        if y.ndim != 1:
            y = y.ravel()
        if X.shape[0] == 0:
            raise DegenerateInput("관측치가 없습니다.")
        if X.shape[0] != len(y):
            raise DegenerateInput(
                f"X와 y의 샘플 수가 일치하지 않습니다: {X.shape[0]} vs {len(y)}"
            )
        if not np.all(np.isfinite(X)):
            raise DegenerateInput("X에 NaN 또는 Inf가 포함되어 있습니다.")

        if y.dtype.kind in 'fc':
            if not np.all(np.isfinite(y)):
                raise DegenerateInput("y에 NaN 또는 Inf가 포함되어 있습니다.")
        elif y.dtype.kind == 'O':
            if any(v is None or (isinstance(v, float) and np.isnan(v)) for v in y):
                raise DegenerateInput("y에 결측 레이블이 포함되어 있습니다.")

        if self.feature_names is not None and len(self.feature_names) > 0:
            names = tuple(self.feature_names)
        else:
            names = tuple(f"x{j}" for j in range(X.shape[1]))
        if len(names) != X.shape[1]:
            raise DegenerateInput(
                f"피처 이름 수가 피처 수와 다릅니다: {len(names)} vs {X.shape[1]}"
            )
        if len(set(names)) != len(names):
            raise DegenerateInput("피처 이름이 중복되었습니다.")

        X.setflags(write=False)
        y.setflags(write=False)

        # frozen dataclass이므로 object.__setattr__ 사용
        object.__setattr__(self, 'X', X)
        object.__setattr__(self, 'y', y)
        object.__setattr__(self, 'feature_names', tuple(str(n) for n in names))

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        response: str,
        features: Optional[Sequence[str]] = None,
        response_transform: str = 'identity'
    ) -> 'Dataset':
        """
        pandas DataFrame에서 데이터셋 생성

        범주형(object/category/bool) 피처는 첫 수준을 기준으로 하는
        더미 변수로 확장됩니다 (R의 treatment contrast와 동일).
        """
        if response not in df.columns:
            raise InvalidModelSpec(f"반응변수 컬럼이 없습니다: {response}")

        if features is None:
            features = [c for c in df.columns if c != response]
        missing = [c for c in features if c not in df.columns]
        if missing:
            raise InvalidModelSpec(f"존재하지 않는 피처 컬럼: {missing}")

        frame = df[list(features) + [response]]
        if frame.isna().any().any():
            bad = frame.columns[frame.isna().any()].tolist()
            raise DegenerateInput(f"결측값이 있는 컬럼: {bad}")

        X_df = pd.get_dummies(frame[list(features)], drop_first=True, dtype=float)

        return cls(
            X=X_df.to_numpy(dtype=float),
            y=frame[response].to_numpy(),
            feature_names=tuple(str(c) for c in X_df.columns),
            response_name=str(response),
            response_transform=response_transform
        )

    @property
    def n_samples(self) -> int:
        return self.X.shape[0]

    @property
    def n_features(self) -> int:
        return self.X.shape[1]

    def feature_index(self, name: str) -> int:
        """피처 이름 → 컬럼 인덱스"""
        try:
            return self.feature_names.index(name)
        except ValueError:
            raise InvalidModelSpec(f"존재하지 않는 피처: {name}") from None

    def select(self, features: Sequence[str]) -> 'Dataset':
        """피처 부분집합 (열 선택)"""
        idx = [self.feature_index(f) for f in features]
        return Dataset(
            X=self.X[:, idx],
            y=self.y,
            feature_names=tuple(features),
            response_name=self.response_name,
            response_transform=self.response_transform
        )

    def take(self, indices: Sequence[int]) -> 'Dataset':
        """관측치 부분집합 (행 선택)"""
        indices = np.asarray(indices, dtype=int)
        return Dataset(
            X=self.X[indices],
            y=self.y[indices],
            feature_names=self.feature_names,
            response_name=self.response_name,
            response_transform=self.response_transform
        )

    @property
    def response_key(self) -> ResponseKey:
        """
        반응변수 식별자

        이름, 변환, 관측치 수, 그리고 반응값 자체의 해시로 구성됩니다.
        두 모델의 response_key가 같을 때만 정보 기준 비교가 유효합니다.
        """
        if self.y.dtype.kind in 'biuf':
            payload = np.ascontiguousarray(self.y, dtype=float).tobytes()
        else:
            payload = '\x1f'.join(str(v) for v in self.y).encode('utf-8')
        digest = hashlib.sha1(payload).hexdigest()

        return ResponseKey(
            name=self.response_name,
            transform=self.response_transform,
            n_samples=self.n_samples,
            fingerprint=digest
        )

    def regression_target(self) -> np.ndarray:
        """회귀용 반응값 (float)"""
        if self.y.dtype.kind not in 'biuf':
            raise DegenerateInput(
                f"회귀에는 수치형 반응값이 필요합니다: dtype={self.y.dtype}"
            )
        return self.y.astype(float)

    def classes(self) -> List[Any]:
        """정렬된 고유 레이블"""
        return list(np.unique(self.y))

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(self.X, columns=list(self.feature_names))
        df[self.response_name] = self.y
        return df

    def __repr__(self) -> str:
        return (
            f"Dataset(n_samples={self.n_samples}, "
            f"n_features={self.n_features}, "
            f"response='{self.response_name}')"
        )
