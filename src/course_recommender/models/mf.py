"""Module containing the collaborative-filtering Matrix Factorization (MF) pytorch model."""
import torch
import torch.nn as nn


class CollaborativeFiltering(nn.Module):
    """
    Matrix Factorization over a dense (courses × users) rating matrix.

    Every course gets a latent vector (row of X), every user a latent vector
    (row of W) and a scalar bias (column of b). The model reconstructs the
    whole mean-centred rating matrix at once as ``X @ W.T + b``.

    Attributes:
        X (nn.Parameter): Item factors, shape [num_courses, num_features].
        W (nn.Parameter): User factors, shape [num_users, num_features].
        b (nn.Parameter): User bias row, shape [1, num_users].
    """
    def __init__(
        self,
        num_users: int,
        num_courses: int,
        num_features: int = 50,
        *,
        init_std: float = 0.1,
        seed: int = 1234,
    ) -> None:
        super().__init__()
        generator = torch.Generator().manual_seed(seed)

        def _normal(*shape: int) -> torch.Tensor:
            return torch.normal(0.0, init_std, size=shape, generator=generator)

        self.W = nn.Parameter(_normal(num_users, num_features))
        self.X = nn.Parameter(_normal(num_courses, num_features))
        # Bias which may capture users who consistently engage more or less than others
        self.b = nn.Parameter(_normal(1, num_users))

    def forward(self) -> torch.Tensor:
        """Reconstructs the full (courses × users) prediction matrix."""
        return self.X @ self.W.T + self.b
