"""
StatLearn Visualizer - 적합 결과 시각화 도구
===========================================

학습된 모델과 교차검증 결과만을 입력으로 받아 그림을 그립니다.

주요 기능:
- λ 경로에 따른 계수 변화 (coefficient path)
- 교차검증 오차 곡선과 λ_min / λ_1se
- 단계적 선택 기록
- 2차원 결정 경계와 서포트 벡터
- (cost, gamma) 그리드 탐색 히트맵

Author: ML From Scratch Project
"""

from typing import Optional, List, Tuple

import numpy as np
import matplotlib.pyplot as plt

from .cross_validation import CVResult
from .dataset import Dataset
from .linear_model import StepwiseResult
from .regularized import RegularizedPath, CVRegularizedModel
from .svm import KernelModel, TuningResult


class StatLearnVisualizer:
    """
    통계 학습 결과 시각화 클래스

    Parameters
    ----------
    figsize : tuple, default=(12, 8)
        기본 Figure 크기

    style : str, optional
        Matplotlib 스타일

    dpi : int, default=100
        Figure DPI
    """

    def __init__(
        self,
        figsize: Tuple[int, int] = (12, 8),
        style: Optional[str] = None,
        dpi: int = 100
    ):
        self.figsize = figsize
        self.style = style
        self.dpi = dpi

        # 스타일 설정
        if self.style:
            try:
                plt.style.use(self.style)
            except OSError:
                pass  # 스타일을 찾을 수 없으면 기본값 사용

        # 색상 팔레트
        self.colors = {
            'primary': '#2E86AB',
            'secondary': '#A23B72',
            'accent': '#F18F01',
            'success': '#C73E1D',
            'neutral': '#3B3B3B',
            'train': '#2E86AB',
            'val': '#F18F01',
            'test': '#C73E1D'
        }

    def plot_coefficient_path(
        self,
        path: RegularizedPath,
        feature_names: Optional[List[str]] = None,
        figsize: Optional[Tuple[int, int]] = None,
        title: str = "Coefficient Path"
    ) -> plt.Figure:
        """
        log(λ)에 따른 계수 변화

        Parameters
        ----------
        path : RegularizedPath
            fit_path()의 결과
        feature_names : list, optional
            범례에 쓸 피처 이름 (기본값: 경로의 피처 이름)

        Returns
        -------
        fig : matplotlib.Figure
        """
        fig, ax = plt.subplots(figsize=figsize or (10, 6), dpi=self.dpi)

        names = feature_names or list(path.feature_names)
        log_lambda = np.log(np.maximum(path.lambdas, 1e-300))
        colors = plt.cm.tab10(np.linspace(0, 1, max(len(names), 1)))

        for j, (name, color) in enumerate(zip(names, colors)):
            ax.plot(log_lambda, path.coefs[:, j], label=name, color=color, linewidth=1.5)

        ax.axhline(y=0, color='gray', linestyle=':', alpha=0.7)

        # 상단 축: 0이 아닌 계수 수
        ax_top = ax.twiny()
        ax_top.set_xlim(ax.get_xlim())
        ticks = np.linspace(0, len(path) - 1, min(len(path), 6)).astype(int)
        ax_top.set_xticks(log_lambda[ticks])
        ax_top.set_xticklabels([str(d) for d in path.df[ticks]])
        ax_top.set_xlabel('Non-zero coefficients', fontsize=10)

        ax.set_xlabel('log(λ)', fontsize=11)
        ax.set_ylabel('Coefficient', fontsize=11)
        ax.set_title(f"{title} (α={path.alpha})", fontsize=14, fontweight='bold')
        if len(names) <= 12:
            ax.legend(loc='best', fontsize=9)
        ax.grid(True, alpha=0.3)

        plt.tight_layout()
        return fig

    def plot_cv_curve(
        self,
        cv_result: CVResult,
        lambda_min: Optional[float] = None,
        lambda_1se: Optional[float] = None,
        figsize: Optional[Tuple[int, int]] = None,
        title: str = "Cross-Validation Error"
    ) -> plt.Figure:
        """λ별 평균 교차검증 오차와 ±1 표준오차 막대"""
        fig, ax = plt.subplots(figsize=figsize or (10, 6), dpi=self.dpi)

        lambdas = cv_result.param_values('lambda')
        log_lambda = np.log(np.maximum(lambdas, 1e-300))

        ax.errorbar(
            log_lambda, cv_result.mean, yerr=cv_result.std_error,
            fmt='o', markersize=4, color=self.colors['success'],
            ecolor='gray', elinewidth=1, capsize=2
        )

        if lambda_min is not None:
            ax.axvline(x=np.log(lambda_min), color=self.colors['primary'],
                       linestyle='--', linewidth=1, label='λ_min')
        if lambda_1se is not None:
            ax.axvline(x=np.log(lambda_1se), color=self.colors['accent'],
                       linestyle='--', linewidth=1, label='λ_1se')

        ax.set_xlabel('log(λ)', fontsize=11)
        ax.set_ylabel(f'CV {cv_result.loss.upper()}', fontsize=11)
        ax.set_title(title, fontsize=14, fontweight='bold')
        if lambda_min is not None or lambda_1se is not None:
            ax.legend(loc='upper left')
        ax.grid(True, alpha=0.3)

        plt.tight_layout()
        return fig

    def plot_cv_model(self, cv_model: CVRegularizedModel, **kwargs) -> plt.Figure:
        return self.plot_cv_curve(
            cv_model.cv,
            lambda_min=cv_model.lambda_min,
            lambda_1se=cv_model.lambda_1se,
            **kwargs
        )

    def plot_stepwise_trace(
        self,
        result: StepwiseResult,
        figsize: Optional[Tuple[int, int]] = None,
        title: str = "Stepwise Selection"
    ) -> plt.Figure:
        """단계별 기준값 변화 (각 점에 추가/제거된 피처 표시)"""
        fig, ax = plt.subplots(figsize=figsize or (10, 5), dpi=self.dpi)

        steps = np.arange(len(result.trace))
        values = [s.criterion_value for s in result.trace]

        ax.plot(steps, values, 'o-', color=self.colors['primary'], linewidth=2)

        for step, s in zip(steps, result.trace):
            if s.feature is None:
                label = 'start'
            else:
                label = ('+' if s.action == 'add' else '-') + s.feature
            ax.annotate(label, xy=(step, s.criterion_value), xytext=(0, 8),
                        textcoords="offset points", ha='center', fontsize=9)

        ax.set_xlabel('Step', fontsize=11)
        ax.set_ylabel(result.criterion.upper(), fontsize=11)
        ax.set_title(f"{title} ({result.direction})", fontsize=14, fontweight='bold')
        ax.set_xticks(steps)
        ax.grid(True, alpha=0.3)

        plt.tight_layout()
        return fig

    def plot_decision_boundary(
        self,
        model: KernelModel,
        dataset: Dataset,
        resolution: int = 200,
        figsize: Optional[Tuple[int, int]] = None,
        title: str = "SVM Decision Boundary"
    ) -> plt.Figure:
        """
        2차원 데이터의 결정 영역과 서포트 벡터

        Raises
        ------
        ValueError
            피처가 2개가 아닌 경우
        """
        if dataset.n_features != 2:
            raise ValueError(f"2차원 데이터만 지원합니다: n_features={dataset.n_features}")

        fig, ax = plt.subplots(figsize=figsize or (8, 7), dpi=self.dpi)

        X = dataset.X
        pad_x = 0.1 * np.ptp(X[:, 0]) + 1e-9
        pad_y = 0.1 * np.ptp(X[:, 1]) + 1e-9
        xx, yy = np.meshgrid(
            np.linspace(X[:, 0].min() - pad_x, X[:, 0].max() + pad_x, resolution),
            np.linspace(X[:, 1].min() - pad_y, X[:, 1].max() + pad_y, resolution)
        )
        grid = np.column_stack([xx.ravel(), yy.ravel()])

        index = {c: i for i, c in enumerate(model.classes)}
        labels = model.predict(grid)
        zz = np.array([index[c] for c in labels]).reshape(xx.shape)

        ax.contourf(xx, yy, zz, alpha=0.2, cmap='tab10',
                    levels=np.arange(len(model.classes) + 1) - 0.5)

        if len(model.classes) == 2:
            f = model.decision_function(grid).reshape(xx.shape)
            ax.contour(xx, yy, f, levels=[-1, 0, 1], colors='k',
                       linestyles=['--', '-', '--'], linewidths=1)

        colors = plt.cm.tab10(np.arange(len(model.classes)))
        for c, color in zip(model.classes, colors):
            mask = dataset.y == c
            ax.scatter(X[mask, 0], X[mask, 1], color=color, s=25,
                       edgecolor='white', label=str(c))

        sv = model.support_indices
        ax.scatter(X[sv, 0], X[sv, 1], s=90, facecolors='none',
                   edgecolors='k', linewidths=1, label='support vectors')

        ax.set_xlabel(dataset.feature_names[0], fontsize=11)
        ax.set_ylabel(dataset.feature_names[1], fontsize=11)
        ax.set_title(f"{title} ({model.kernel!r}, C={model.cost})",
                     fontsize=12, fontweight='bold')
        ax.legend(loc='best', fontsize=9)

        plt.tight_layout()
        return fig

    def plot_tuning_grid(
        self,
        tuning: TuningResult,
        figsize: Optional[Tuple[int, int]] = None,
        title: str = "Grid Search (CV error)"
    ) -> plt.Figure:
        """(cost, gamma) 그리드의 평균 교차검증 오차 히트맵"""
        cv_result = tuning.cv
        costs = np.unique(cv_result.param_values('cost'))
        gammas_raw = cv_result.param_values('gamma')
        gammas = np.unique(gammas_raw[~np.isnan(gammas_raw)]) if np.any(~np.isnan(gammas_raw)) \
            else np.array([np.nan])

        table = np.full((len(gammas), len(costs)), np.nan)
        for point, err in zip(cv_result.params, cv_result.mean):
            i = 0 if point['gamma'] is None else int(np.where(gammas == point['gamma'])[0][0])
            j = int(np.where(costs == point['cost'])[0][0])
            table[i, j] = err

        fig, ax = plt.subplots(figsize=figsize or (8, 6), dpi=self.dpi)
        im = ax.imshow(table, cmap='viridis_r', aspect='auto', origin='lower')
        fig.colorbar(im, ax=ax, label=f'CV {cv_result.loss}')

        for i in range(table.shape[0]):
            for j in range(table.shape[1]):
                ax.text(j, i, f'{table[i, j]:.3f}', ha='center', va='center',
                        fontsize=8, color='white')

        ax.set_xticks(np.arange(len(costs)))
        ax.set_xticklabels([f'{c:g}' for c in costs])
        ax.set_yticks(np.arange(len(gammas)))
        ax.set_yticklabels(['-' if np.isnan(g) else f'{g:g}' for g in gammas])
        ax.set_xlabel('cost', fontsize=11)
        ax.set_ylabel('gamma', fontsize=11)
        ax.set_title(f"{title}: best cost={tuning.best_cost:g}, gamma={tuning.best_gamma}",
                     fontsize=12, fontweight='bold')

        plt.tight_layout()
        return fig

    def save_figure(
        self,
        fig: plt.Figure,
        filepath: str,
        dpi: Optional[int] = None
    ):
        """Figure 저장"""
        fig.savefig(filepath, dpi=dpi or self.dpi, bbox_inches='tight',
                    facecolor='white', edgecolor='none')
        print(f"Figure saved: {filepath}")
