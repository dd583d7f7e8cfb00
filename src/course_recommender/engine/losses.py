"""Module containing the loss function used in collaborative-filtering training."""
import torch


def cofi_cost(
    predictions: torch.Tensor,
    X: torch.Tensor,
    W: torch.Tensor,
    Ynorm: torch.Tensor,
    R: torch.Tensor,
    lambda_: float,
) -> torch.Tensor:
    """Computes the masked, L2-regularised squared error of a factorisation.

    Only observed cells (``R == 1``) contribute to the error term, so unobserved
    placeholders produce neither loss nor gradient. The user bias is not
    regularised.

    Args:
        predictions (torch.Tensor): ``X @ W.T + b``; shape [num_courses, num_users].
        X (torch.Tensor): Item factors; shape [num_courses, num_features].
        W (torch.Tensor): User factors; shape [num_users, num_features].
        Ynorm (torch.Tensor): Mean-centred targets; same shape as `predictions`.
        R (torch.Tensor): Binary observed mask; same shape as `predictions`.
        lambda_ (float): L2 regularisation strength.

    Returns:
        torch.Tensor: Scalar loss.
    """
    error = (predictions - Ynorm) * R
    cost_term = 0.5 * error.square().sum()
    reg_term = (lambda_ / 2) * (X.square().sum() + W.square().sum())
    return cost_term + reg_term
