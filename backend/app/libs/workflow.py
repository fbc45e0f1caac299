"""Status transition rules for plugin requests and design conversions."""

from typing import Dict, FrozenSet, Union

from app.libs.models import ConversionStatus, PluginStatus


class InvalidTransition(Exception):
    """Raised when a record is moved to a status its current status does not allow"""
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        self.message = f"Cannot move from '{current}' to '{target}'"
        super().__init__(self.message)


CONVERSION_TRANSITIONS: Dict[ConversionStatus, FrozenSet[ConversionStatus]] = {
    ConversionStatus.PENDING: frozenset({ConversionStatus.ANALYZING}),
    ConversionStatus.ANALYZING: frozenset({ConversionStatus.GENERATING, ConversionStatus.FAILED}),
    ConversionStatus.GENERATING: frozenset({ConversionStatus.COMPLETED, ConversionStatus.FAILED}),
    ConversionStatus.COMPLETED: frozenset(),
    # Retry restarts the pipeline
    ConversionStatus.FAILED: frozenset({ConversionStatus.ANALYZING}),
}

PLUGIN_TRANSITIONS: Dict[PluginStatus, FrozenSet[PluginStatus]] = {
    PluginStatus.PENDING: frozenset({PluginStatus.GENERATING, PluginStatus.FAILED}),
    PluginStatus.GENERATING: frozenset({PluginStatus.TESTING, PluginStatus.FAILED}),
    PluginStatus.TESTING: frozenset({PluginStatus.COMPLETED, PluginStatus.FAILED}),
    PluginStatus.COMPLETED: frozenset(),
    PluginStatus.FAILED: frozenset({PluginStatus.PENDING}),
}

# Statuses a user sees as "in progress" on the dashboard
PLUGIN_IN_PROGRESS = frozenset({PluginStatus.PENDING, PluginStatus.GENERATING, PluginStatus.TESTING})


def conversion_transition(current: Union[str, ConversionStatus], target: Union[str, ConversionStatus]) -> ConversionStatus:
    """Validate a conversion status change and return the target status."""
    current, target = ConversionStatus(current), ConversionStatus(target)
    if target not in CONVERSION_TRANSITIONS[current]:
        raise InvalidTransition(current.value, target.value)
    return target


def plugin_transition(current: Union[str, PluginStatus], target: Union[str, PluginStatus]) -> PluginStatus:
    """Validate a plugin request status change and return the target status."""
    current, target = PluginStatus(current), PluginStatus(target)
    if target not in PLUGIN_TRANSITIONS[current]:
        raise InvalidTransition(current.value, target.value)
    return target


def can_process_conversion(status: Union[str, ConversionStatus]) -> bool:
    """A conversion can enter the pipeline from pending or after a failure."""
    return ConversionStatus.ANALYZING in CONVERSION_TRANSITIONS[ConversionStatus(status)]
