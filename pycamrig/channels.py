"""
Named, typed per-frame data slots.

A ChannelGroup maps a channel name to one Channel holding a value of a
fixed ChannelKind. A channel that was never added is absent; reading it
raises MissingChannelError, so callers test with has_channel() first.
"""

from enum import Enum
from typing import Any, Dict, Iterator, KeysView, Optional

import numpy as np

from .exceptions import MissingChannelError


class ChannelKind(Enum):
    """Tag of the value stored in a channel."""
    MATRIX = 0       # 2D float64 array
    VECTOR = 1       # 1D float64 array
    DESCRIPTORS = 2  # 2D uint8 array, one column per keypoint
    IMAGE = 3        # any ndarray, stored by reference
    OBJECT = 4       # arbitrary payload


def _empty_value(kind: ChannelKind) -> Any:
    if kind is ChannelKind.MATRIX:
        return np.empty((0, 0), dtype=np.float64)
    if kind is ChannelKind.VECTOR:
        return np.empty((0,), dtype=np.float64)
    if kind is ChannelKind.DESCRIPTORS:
        return np.empty((0, 0), dtype=np.uint8)
    if kind is ChannelKind.IMAGE:
        return np.empty((0, 0), dtype=np.uint8)
    return None


def _coerce(kind: ChannelKind, data: Any) -> Any:
    """Validates `data` for `kind`. Array kinds other than IMAGE are copied."""
    if kind is ChannelKind.MATRIX:
        value = np.array(data, dtype=np.float64)
        if value.ndim != 2:
            raise ValueError(f"MATRIX channel data must be 2D, got shape {value.shape}")
        return value
    if kind is ChannelKind.VECTOR:
        value = np.array(data, dtype=np.float64)
        if value.ndim != 1:
            raise ValueError(f"VECTOR channel data must be 1D, got shape {value.shape}")
        return value
    if kind is ChannelKind.DESCRIPTORS:
        value = np.array(data)
        if value.dtype != np.uint8:
            raise TypeError(f"DESCRIPTORS channel data must be uint8, got {value.dtype}")
        if value.ndim != 2:
            raise ValueError(f"DESCRIPTORS channel data must be 2D, got shape {value.shape}")
        return value
    if kind is ChannelKind.IMAGE:
        if not isinstance(data, np.ndarray):
            raise TypeError(f"IMAGE channel data must be a numpy array, got {type(data).__name__}")
        return data
    return data


def _values_equal(kind: ChannelKind, a: Any, b: Any) -> bool:
    if kind is ChannelKind.OBJECT:
        if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
            return bool(np.array_equal(a, b))
        return bool(a == b)
    return a.shape == b.shape and a.dtype == b.dtype and bool(np.array_equal(a, b))


class Channel:
    """A single named value of a fixed kind."""

    __slots__ = ['name', 'kind', 'value']

    name: str
    kind: ChannelKind
    value: Any

    def __init__(self, name: str, kind: ChannelKind, value: Any = None):
        self.name = name
        self.kind = kind
        self.value = _empty_value(kind) if value is None else _coerce(kind, value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Channel):
            return NotImplemented
        return self.name == other.name and self.kind == other.kind and \
               _values_equal(self.kind, self.value, other.value)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        shape = getattr(self.value, 'shape', None)
        return f"Channel(name='{self.name}', kind={self.kind.name}, shape={shape})"


class ChannelGroup:
    """Provides dict-like, kind-checked access to a set of channels."""

    def __init__(self):
        self._channels: Dict[str, Channel] = {}

    def add_channel(self, name: str, kind: ChannelKind) -> Channel:
        """
        Adds an empty channel. Adding an existing channel of the same kind is a no-op.

        Raises:
            TypeError: If the channel exists with another kind.
        """
        channel = self._channels.get(name)
        if channel is not None:
            if channel.kind is not kind:
                raise TypeError(f"Channel '{name}' already exists with kind {channel.kind.name}, not {kind.name}")
            return channel
        channel = Channel(name, kind)
        self._channels[name] = channel
        return channel

    def has_channel(self, name: str) -> bool:
        return name in self._channels

    def get_channel(self, name: str) -> Channel:
        if name not in self._channels:
            raise MissingChannelError(name)
        return self._channels[name]

    def get_channel_data(self, name: str, kind: Optional[ChannelKind] = None) -> Any:
        """
        Returns the stored value of channel `name`.

        Raises:
            MissingChannelError: If the channel does not exist.
            TypeError: If `kind` is given and does not match the channel.
        """
        channel = self.get_channel(name)
        if kind is not None and channel.kind is not kind:
            raise TypeError(f"Channel '{name}' has kind {channel.kind.name}, not {kind.name}")
        return channel.value

    def set_channel_data(self, name: str, data: Any, kind: ChannelKind) -> None:
        """Stores `data` in channel `name`, adding the channel if needed."""
        value = _coerce(kind, data)
        self.add_channel(name, kind).value = value

    def remove_channel(self, name: str) -> None:
        if name not in self._channels:
            raise MissingChannelError(name)
        del self._channels[name]

    def names(self) -> KeysView[str]:
        return self._channels.keys()

    def __contains__(self, name: str) -> bool:
        return name in self._channels

    def __len__(self) -> int:
        return len(self._channels)

    def __iter__(self) -> Iterator[str]:
        return iter(self._channels)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChannelGroup):
            return NotImplemented
        if self._channels.keys() != other._channels.keys():
            return False
        return all(channel == other._channels[name] for name, channel in self._channels.items())

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ChannelGroup({', '.join(self._channels)})"
