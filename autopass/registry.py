"""
autopass Credential Registry

Validation module binding one P256 public key per (namespace, account).

State per (namespace, account) is either bound (a PublicKey) or unbound
(absent). Only the account itself can change its own bindings: every
mutating call takes the invoking identity as `caller` and writes under
that identity, never under an arbitrary target.

Checks:
- validate_signature: is-valid-signature contract, fixed magic values
- validate_batched_operation: 0 = pass, 1 = fail, against op.sender
- validate_direct_call: no cryptography, caller must be the account or
  the registry itself; anything else raises NotAuthorized

Cryptographic checks never raise. The direct-call check is the only hard
stop in this module.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterator, Optional, Tuple

from .encoding import check_namespace, decode_install_data, decode_uninstall_data
from .environment import ExecutionEnvironment, normalize_address
from .errors import NotAuthorized
from .events import CredentialChanged
from .keys import PublicKey
from .logging_config import audit_log
from .modules import AccountModule, Capability, ModuleType
from .verifier import P256Verifier

logger = logging.getLogger(__name__)

ERC1271_MAGIC_VALUE = bytes.fromhex("1626ba7e")
ERC1271_INVALID = bytes.fromhex("ffffffff")


class ValidationCode(IntEnum):
    """Batched operation validation result."""
    PASS = 0
    FAIL = 1


@dataclass
class UserOperation:
    """
    Batched operation submitted on behalf of an account.

    Only sender and signature matter to the registry; the rest is carried
    for the framework that builds the operation hash.
    """
    sender: str
    nonce: int = 0
    call_data: bytes = b""
    signature: bytes = b""


class CredentialRegistry(AccountModule):
    """
    P256 credential registry.

    Usage:
        registry = CredentialRegistry(env, registry_address)
        registry.install(account, 0, key)
        registry.validate_signature(account, 0, digest, signature)
    """

    NAME = "autopass.p256-credential-registry"
    VERSION = "1.0.0"
    MODULE_TYPES = frozenset({ModuleType.VALIDATOR})
    CAPABILITIES = frozenset({
        Capability.MODULE,
        Capability.VALIDATOR,
        Capability.SIGNATURE_VALIDATION,
    })

    def __init__(
        self,
        env: ExecutionEnvironment,
        address: str,
        verifier: Optional[P256Verifier] = None
    ):
        super().__init__(env, address)
        self.verifier = verifier or P256Verifier.for_environment(env)
        self._bindings: Dict[Tuple[int, str], PublicKey] = {}

    # ------------------------------------------------------------------
    # Binding state
    # ------------------------------------------------------------------

    def credential_of(self, namespace_id: int, account: str) -> Optional[PublicKey]:
        """Bound key for (namespace, account), or None if unbound."""
        return self._bindings.get((check_namespace(namespace_id), normalize_address(account)))

    def is_initialized(self, account: str, namespace_id: int = 0) -> bool:
        return self.credential_of(namespace_id, account) is not None

    def bindings_of(self, account: str) -> Iterator[Tuple[int, PublicKey]]:
        account = normalize_address(account)
        for (namespace_id, owner), key in sorted(self._bindings.items()):
            if owner == account:
                yield namespace_id, key

    def _rebind(self, caller: str, namespace_id: int, new_key: Optional[PublicKey]) -> None:
        account = normalize_address(caller)
        slot = (check_namespace(namespace_id), account)
        if new_key is not None and not isinstance(new_key, PublicKey):
            raise TypeError("key must be a PublicKey")

        old_key = self._bindings.get(slot)
        if new_key is None:
            self._bindings.pop(slot, None)
        else:
            self._bindings[slot] = new_key

        self.events.emit(CredentialChanged(account, namespace_id, old_key, new_key))
        audit_log.credential_changed(
            account,
            namespace_id,
            old_key.to_hex() if old_key else None,
            new_key.to_hex() if new_key else None,
        )
        if new_key is not None and not new_key.is_valid():
            # Accepted; every signature check against it will fail.
            logger.warning("Bound off-curve key for %s namespace %d", account, namespace_id)

    def install(self, caller: str, namespace_id: int, key: PublicKey) -> None:
        """Bind key to the caller's own (namespace) slot, replacing any old key."""
        self._rebind(caller, namespace_id, key)

    def transfer(self, caller: str, namespace_id: int, new_key: PublicKey) -> None:
        """Rotate the caller's credential to a new key."""
        self._rebind(caller, namespace_id, new_key)

    def uninstall(self, caller: str, namespace_id: int) -> None:
        """Unbind the caller's credential for a namespace."""
        self._rebind(caller, namespace_id, None)

    def on_install(self, caller: str, data: bytes) -> None:
        namespace_id, key = decode_install_data(data)
        self.install(caller, namespace_id, key)

    def on_uninstall(self, caller: str, data: bytes) -> None:
        self.uninstall(caller, decode_uninstall_data(data))

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check(self, account: str, namespace_id: int, digest: bytes, signature: bytes, context: str) -> bool:
        try:
            key = self.credential_of(namespace_id, account)
        except (TypeError, ValueError):
            logger.debug("Malformed %s lookup: %r / %r", context, account, namespace_id)
            return False

        valid = self.verifier.verify_signature(digest, signature, key)
        audit_log.signature_checked(str(account), namespace_id, valid, context)
        return valid

    def validate_signature(
        self,
        account: str,
        namespace_id: int,
        digest: bytes,
        signature: bytes
    ) -> bytes:
        """
        Check a signature made by the account's credential.

        Returns:
            ERC1271_MAGIC_VALUE if authenticated, ERC1271_INVALID otherwise
        """
        if self._check(account, namespace_id, digest, signature, "signature"):
            return ERC1271_MAGIC_VALUE
        return ERC1271_INVALID

    def validate_batched_operation(
        self,
        namespace_id: int,
        operation: UserOperation,
        operation_hash: bytes
    ) -> ValidationCode:
        """Gate a batched operation on its sender's credential."""
        if self._check(operation.sender, namespace_id, operation_hash, operation.signature, "operation"):
            return ValidationCode.PASS
        return ValidationCode.FAIL

    def validate_direct_call(
        self,
        account: str,
        namespace_id: int,
        caller: str,
        data: bytes = b""
    ) -> bool:
        """
        Authorize a direct call: self-initiated or relayed by this registry.

        Raises:
            NotAuthorized: For any other caller
        """
        try:
            allowed = normalize_address(caller) in (normalize_address(account), self.address)
        except ValueError:
            allowed = False

        if not allowed:
            audit_log.call_rejected(
                "direct_call",
                "NOT_AUTHORIZED",
                account=account,
                caller=caller,
                namespace_id=namespace_id,
            )
            raise NotAuthorized(account, caller)
        return True
