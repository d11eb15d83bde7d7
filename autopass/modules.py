"""
Account module base.

Modules are discovered by the surrounding account framework through a
versioned identity string and capability queries. Type ids follow the
ERC-7579 numbering.
"""

from abc import ABC, abstractmethod
from enum import Enum, IntEnum
from typing import FrozenSet, Union

from .environment import ExecutionEnvironment, normalize_address
from .events import EventLog


class ModuleType(IntEnum):
    VALIDATOR = 1
    EXECUTOR = 2
    FALLBACK = 3
    HOOK = 4


class Capability(str, Enum):
    """Capabilities a module can answer for."""
    MODULE = "module"                            # generic install/uninstall lifecycle
    VALIDATOR = "validator"                      # batched operation validation
    SIGNATURE_VALIDATION = "signature_validation"  # is-valid-signature contract
    EXECUTOR = "executor"                        # executes on behalf of an account


class AccountModule(ABC):
    """
    Common surface of installable modules.

    Subclasses declare NAME, VERSION, MODULE_TYPES and CAPABILITIES.
    """

    NAME: str = ""
    VERSION: str = ""
    MODULE_TYPES: FrozenSet[ModuleType] = frozenset()
    CAPABILITIES: FrozenSet[Capability] = frozenset({Capability.MODULE})

    def __init__(self, env: ExecutionEnvironment, address: str):
        self.env = env
        self.address = normalize_address(address)
        self.events = EventLog()

    @property
    def module_id(self) -> str:
        return f"{self.NAME}@{self.VERSION}"

    def is_module_type(self, type_id: Union[int, ModuleType]) -> bool:
        return type_id in {int(t) for t in self.MODULE_TYPES}

    def supports_capability(self, capability: Union[str, Capability]) -> bool:
        try:
            capability = Capability(capability)
        except ValueError:
            return False
        return capability in self.CAPABILITIES

    @abstractmethod
    def on_install(self, caller: str, data: bytes) -> None:
        pass

    @abstractmethod
    def on_uninstall(self, caller: str, data: bytes) -> None:
        pass
