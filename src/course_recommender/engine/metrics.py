import numpy as np
import torch


def matrix_density(R: np.ndarray | torch.Tensor) -> float:
    """Share of observed cells in the mask matrix."""
    total = R.shape[0] * R.shape[1]
    if total == 0:
        return 0.0
    return float(R.sum()) / total


def observed_rmse(predictions: torch.Tensor, Y: torch.Tensor, R: torch.Tensor) -> float:
    """Root-mean-square error of de-normalised predictions over observed cells only."""
    num_observed = float(R.sum())
    if num_observed == 0:
        return 0.0
    with torch.no_grad():
        squared = ((predictions - Y) * R).square().sum()
    return float(torch.sqrt(squared / num_observed))
