"""Vector and rotation matrix operations."""

from typing import Tuple
import numpy as np
from numpy.typing import NDArray

WORLD_X = np.array([1.0, 0.0, 0.0])
WORLD_Y = np.array([0.0, 1.0, 0.0])


class FrameOps:
    """Static methods for building and checking boot frames."""

    @staticmethod
    def normalize(v: NDArray[np.float64]) -> NDArray[np.float64]:
        """Return unit vector, or the input unchanged if it has zero length."""
        n = np.linalg.norm(v)
        if n == 0.0:
            return np.asarray(v, dtype=np.float64)
        return np.asarray(v, dtype=np.float64) / n

    @staticmethod
    def angle_between_deg(a: NDArray[np.float64], b: NDArray[np.float64]) -> float:
        """Angle between two vectors in degrees.

        Args:
            a: First vector (any length).
            b: Second vector (any length).

        Returns:
            Angle in [0, 180].
        """
        cos_angle = np.dot(FrameOps.normalize(a), FrameOps.normalize(b))
        return float(np.degrees(np.arccos(np.clip(cos_angle, -1.0, 1.0))))

    @staticmethod
    def reject(v: NDArray[np.float64], axis: NDArray[np.float64]) -> NDArray[np.float64]:
        """Component of v orthogonal to the unit vector axis."""
        return v - np.dot(v, axis) * axis

    @staticmethod
    def level_basis(
        z_axis: NDArray[np.float64],
        parallel_cos: float = 0.9,
    ) -> NDArray[np.float64]:
        """Build a right-handed orthonormal basis around an up direction.

        World X is used as the forward reference unless it is nearly
        parallel to z_axis, in which case world Y is used.

        Args:
            z_axis: Unit up direction in sensor coordinates.
            parallel_cos: |cos| above which the reference counts as parallel.

        Returns:
            3x3 matrix with rows [x, y, z].
        """
        reference = WORLD_X
        if abs(np.dot(reference, z_axis)) > parallel_cos:
            reference = WORLD_Y

        x_axis = FrameOps.normalize(FrameOps.reject(reference, z_axis))
        y_axis = FrameOps.normalize(np.cross(z_axis, x_axis))
        return np.vstack([x_axis, y_axis, z_axis])

    @staticmethod
    def orthonormality_error(R: NDArray[np.float64]) -> float:
        """Largest deviation of R @ R.T from identity."""
        return float(np.max(np.abs(R @ R.T - np.eye(3))))

    @staticmethod
    def is_orthonormal(R: NDArray[np.float64], tolerance: float = 1e-6) -> bool:
        """Check rows are mutually orthogonal unit vectors."""
        return FrameOps.orthonormality_error(R) <= tolerance

    @staticmethod
    def mean_and_magnitude_std(
        vectors: NDArray[np.float64],
    ) -> Tuple[NDArray[np.float64], float]:
        """Mean vector and standard deviation of per-row magnitudes.

        Args:
            vectors: (N, 3) array.

        Returns:
            (mean, std of norms) tuple.
        """
        mean = np.mean(vectors, axis=0)
        magnitudes = np.linalg.norm(vectors, axis=1)
        return mean, float(np.std(magnitudes))
