from .quaternion_utils import (
    IDENTITY_QUATERNION,
    normalize_quaternion,
    quaternion_to_rotation_matrix,
    rotation_to_quaternion
)

__all__ = [
    'IDENTITY_QUATERNION',
    'normalize_quaternion',
    'quaternion_to_rotation_matrix',
    'rotation_to_quaternion'
]
