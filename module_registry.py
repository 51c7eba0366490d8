"""
harmonicxplorer - Module Registry
Registers external collaborators (renderer, audio, UI) and fans out lifecycle
hooks in registration order. One failing collaborator never blocks the rest.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from errors import CollaboratorError
from logging_utils import log_event

HOOKS = ('initialize', 'on_state_update', 'on_resize', 'on_start', 'on_stop', 'render')


@dataclass
class FanOutReport:
    """Who received a hook and who failed."""
    hook: str
    called: list[str] = field(default_factory=list)
    errors: list[CollaboratorError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class ModuleRegistry:
    def __init__(self):
        self._modules: dict[str, Any] = {}

    def register(self, name: str, collaborator: Any) -> None:
        if name in self._modules:
            log_event("WARN", "Registry", "Module already registered, replacing", name=name)
            # Re-registering keeps the earlier position in the fan-out order
        self._modules[name] = collaborator
        log_event("INFO", "Registry", "Registered module", name=name)

    def unregister(self, name: str) -> Optional[Any]:
        return self._modules.pop(name, None)

    def get(self, name: str) -> Optional[Any]:
        module = self._modules.get(name)
        if module is None:
            log_event("WARN", "Registry", "Module not found", name=name)
        return module

    def names(self) -> list[str]:
        return list(self._modules)

    def clear(self) -> None:
        self._modules.clear()

    def __contains__(self, name: str) -> bool:
        return name in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def fan_out(self, hook: str, *args) -> FanOutReport:
        """Call `hook(*args)` on every collaborator that implements it."""
        report = FanOutReport(hook)
        for name, module in list(self._modules.items()):
            method = getattr(module, hook, None)
            if not callable(method):
                continue
            try:
                method(*args)
                report.called.append(name)
            except Exception as e:
                error = CollaboratorError(name, hook, e)
                report.errors.append(error)
                log_event("ERROR", "Registry", "Collaborator hook failed", module=name, hook=hook, error=e)
        return report

    def initialize(self) -> FanOutReport:
        return self.fan_out('initialize')

    def on_state_update(self, state, change_set) -> FanOutReport:
        return self.fan_out('on_state_update', state, change_set)

    def on_resize(self, width: int, height: int) -> FanOutReport:
        return self.fan_out('on_resize', width, height)

    def on_start(self) -> FanOutReport:
        return self.fan_out('on_start')

    def on_stop(self) -> FanOutReport:
        return self.fan_out('on_stop')

    def render(self) -> FanOutReport:
        return self.fan_out('render')
