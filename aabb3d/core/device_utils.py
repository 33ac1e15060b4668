"""
Device utilities for aabb3d

Provides unified device and dtype resolution for the tree and the apps.
Priority: explicit device arg > input tensors > default (config.DEVICE)
"""

from typing import Optional, Sequence, Union
import torch

from .. import config


def resolve_device(
    *tensors: Optional[torch.Tensor],
    device: Optional[Union[str, torch.device]] = None,
    default: Optional[str] = None
) -> torch.device:
    """
    Resolve device with priority: explicit device > input tensors > default.

    Args:
        *tensors: Input tensors to infer device from (first non-None wins)
        device: Explicitly specified device (overrides tensor inference if not None)
        default: Default device if no tensors and no explicit device
            (None = config.DEVICE)

    Returns:
        torch.device: Resolved device

    Examples:
        >>> t = torch.zeros(3, device='cpu')
        >>> resolve_device(t)
        device(type='cpu')
        >>> resolve_device(None, device='cpu')
        device(type='cpu')
    """
    if device is not None:
        if isinstance(device, torch.device):
            return device
        return torch.device(device)

    for tensor in tensors:
        if tensor is not None and isinstance(tensor, torch.Tensor):
            return tensor.device

    default = config.DEVICE if default is None else default
    if default.startswith('cuda') and not torch.cuda.is_available():
        return torch.device('cpu')

    return torch.device(default)


def as_point(
    value: Union[torch.Tensor, Sequence[float]],
    dtype: Optional[torch.dtype] = None,
    device: Optional[Union[str, torch.device]] = None
) -> torch.Tensor:
    """
    Convert a point-like value to a [3] tensor.

    Args:
        value: tensor or sequence of 3 coordinates
        dtype: target dtype (None = keep tensor dtype, config.DTYPE for sequences)
        device: target device (None = resolve from value)

    Returns:
        point: [3] tensor

    Raises:
        ValueError: if value does not hold exactly 3 coordinates
    """
    if isinstance(value, torch.Tensor):
        point = value.to(
            device=resolve_device(value, device=device),
            dtype=dtype or value.dtype,
        )
    else:
        point = torch.as_tensor(
            value,
            dtype=dtype or config.DTYPE,
            device=resolve_device(device=device),
        )
    if point.shape != (3,):
        raise ValueError(f"point must have shape (3,), got {tuple(point.shape)}")
    return point


def ensure_same_device(*tensors: torch.Tensor, target_device: Optional[torch.device] = None) -> tuple:
    """
    Ensure all tensors are on the same device.

    Args:
        *tensors: Tensors to check/move
        target_device: Target device (if None, uses first tensor's device)

    Returns:
        Tuple of tensors on the same device

    Raises:
        ValueError: If no tensors provided
    """
    if not tensors:
        raise ValueError("At least one tensor required")

    if target_device is None:
        target_device = tensors[0].device

    return tuple(t.to(target_device) if t.device != target_device else t for t in tensors)
