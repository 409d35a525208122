"""
statlearn - 통계 학습 알고리즘 직접 구현
=======================================

통계 계산 강의 노트에서 다루는 모델 선택, 정규화 회귀, 커널 분류를
NumPy 기반으로 직접 구현합니다.

구현된 컴포넌트:
- LinearModelSelector: AIC/BIC/수정 R² 기반 단계적 선택과 전역 부분집합 탐색
- RegularizedLinearSolver: 좌표 하강법 Elastic-Net 경로 + 교차검증 λ 선택
- KernelClassifier: SMO 쌍대 풀이 기반 커널 SVM (one-vs-one, Platt 확률)
- KernelRegressor: 같은 풀이기를 쓰는 ε-SVR

Author: ML From Scratch Project
"""

from .dataset import Dataset
from .exceptions import (
    StatLearnError,
    InvalidModelSpec,
    DegenerateInput,
    NonConvergence,
    InfeasibleDual
)
from .cross_validation import CVConfig, CVResult
from .linear_model import LinearModelSelector, ModelScore, StepwiseResult
from .regularized import (
    RegularizedLinearSolver,
    RegularizedLinearModel,
    RegularizedPath,
    CVRegularizedModel
)
from .kernels import Kernel
from .svm import (
    KernelClassifier,
    KernelRegressor,
    KernelModel,
    KernelRegressionModel,
    Prediction,
    TuningResult
)
from .visualizer import StatLearnVisualizer

__all__ = [
    'Dataset',
    'StatLearnError',
    'InvalidModelSpec',
    'DegenerateInput',
    'NonConvergence',
    'InfeasibleDual',
    'CVConfig',
    'CVResult',
    'LinearModelSelector',
    'ModelScore',
    'StepwiseResult',
    'RegularizedLinearSolver',
    'RegularizedLinearModel',
    'RegularizedPath',
    'CVRegularizedModel',
    'Kernel',
    'KernelClassifier',
    'KernelRegressor',
    'KernelModel',
    'KernelRegressionModel',
    'Prediction',
    'TuningResult',
    'StatLearnVisualizer'
]

__version__ = '1.0.0'
