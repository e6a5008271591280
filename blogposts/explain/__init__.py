"""
Explainability Module
=====================
Figures for every post and SHAP explanations of the tree-based salary models.
"""

from . import plots
from .shap_utils import SHAPExplainer

__all__ = [
    'plots',
    'SHAPExplainer'
]
