"""
Kernels - 커널 함수
===================

두 피처 벡터를 유사도 스칼라로 사상하는 순수 함수.

    linear:      K(a, b) = a·b
    polynomial:  K(a, b) = (1 + a·b)^d
    radial:      K(a, b) = exp(-γ ||a - b||²)

커널과 그 모수는 적합 설정의 일부이며, 학습된 모델의 수명 동안 고정됩니다.

Author: ML From Scratch Project
"""

from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from .exceptions import InvalidModelSpec

KERNEL_NAMES = ('linear', 'polynomial', 'radial')


@dataclass(frozen=True)
class Kernel:
    """
    커널 기술자 (상태 없음)

    Parameters
    ----------
    name : str
        'linear', 'polynomial', 'radial'

    degree : int, default=3
        다항 커널 차수

    gamma : float, optional
        RBF 대역폭. None이면 적합 시 1/n_features로 결정

    Examples
    --------
    >>> k = Kernel.radial(gamma=0.5)
    >>> k(np.array([0.0, 0.0]), np.array([1.0, 1.0]))
    0.36787944117144233
    """
    name: str = 'radial'
    degree: int = 3
    gamma: Optional[float] = None

    def __post_init__(self):
        if self.name not in KERNEL_NAMES:
            raise InvalidModelSpec(f"알 수 없는 커널: {self.name} (가능: {KERNEL_NAMES})")
        if self.name == 'polynomial' and int(self.degree) < 1:
            raise InvalidModelSpec(f"다항 차수는 1 이상이어야 합니다: {self.degree}")
        if self.gamma is not None and self.gamma <= 0:
            raise InvalidModelSpec(f"gamma는 양수여야 합니다: {self.gamma}")

    @classmethod
    def linear(cls) -> 'Kernel':
        return cls('linear')

    @classmethod
    def polynomial(cls, degree: int = 3) -> 'Kernel':
        return cls('polynomial', degree=degree)

    @classmethod
    def radial(cls, gamma: Optional[float] = None) -> 'Kernel':
        return cls('radial', gamma=gamma)

    def with_gamma(self, gamma: Optional[float]) -> 'Kernel':
        return replace(self, gamma=gamma)

    def resolve(self, n_features: int) -> 'Kernel':
        """gamma가 비어 있는 RBF 커널에 기본값 1/p 지정"""
        if self.name == 'radial' and self.gamma is None:
            return self.with_gamma(1.0 / max(n_features, 1))
        return self

    def __call__(self, a: np.ndarray, b: np.ndarray) -> float:
        a = np.asarray(a, dtype=float).ravel()
        b = np.asarray(b, dtype=float).ravel()
        return float(self.gram(a[None, :], b[None, :])[0, 0])

    def gram(self, A: np.ndarray, B: np.ndarray) -> np.ndarray:
        """
        커널 행렬 K[i, j] = K(A_i, B_j)

        RBF는 ||a - b||² = ||a||² + ||b||² - 2a·b 전개를 사용하며
        반올림 오차로 생기는 음수 거리는 0으로 자릅니다.
        """
        A = np.atleast_2d(np.asarray(A, dtype=float))
        B = np.atleast_2d(np.asarray(B, dtype=float))
        inner = A @ B.T

        if self.name == 'linear':
            return inner
        if self.name == 'polynomial':
            return (1.0 + inner) ** int(self.degree)

        if self.gamma is None:
            raise InvalidModelSpec("RBF 커널의 gamma가 지정되지 않았습니다. resolve()를 먼저 호출하세요.")

        sq_dist = (
            np.sum(A ** 2, axis=1)[:, None]
            + np.sum(B ** 2, axis=1)[None, :]
            - 2.0 * inner
        )
        np.maximum(sq_dist, 0.0, out=sq_dist)
        return np.exp(-self.gamma * sq_dist)

    def __repr__(self) -> str:
        if self.name == 'linear':
            return "Kernel(linear)"
        if self.name == 'polynomial':
            return f"Kernel(polynomial, degree={self.degree})"
        return f"Kernel(radial, gamma={self.gamma})"
