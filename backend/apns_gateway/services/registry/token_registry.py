"""
Persistent push token registry.

Two lists (send, block), each partitioned by environment (sandbox,
production), keyed by client IP. Each (list, environment) pair maps to its
own storage namespace:

    tok_snd_s  sandbox send list      tok_blk_s  sandbox block list
    tok_snd_p  production send list   tok_blk_p  production block list

For a given (environment, ip) an entry lives in at most one list. Moves
write the destination before deleting the source, so an interrupted move
leaves the entry duplicated rather than lost.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from apns_gateway.core.errors import ArgumentError
from apns_gateway.core.logging_config import mask_token
from apns_gateway.models.kv_entry import KEY_MAX_LENGTH, VALUE_MAX_LENGTH
from apns_gateway.services.push.constants import DEVICE_TOKEN_PATTERN, Environment
from apns_gateway.services.registry.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

_DEVICE_TOKEN_RE = re.compile(DEVICE_TOKEN_PATTERN)


class TokenList(str, Enum):
    """Registry list."""

    SEND = "send"
    BLOCK = "block"


NAMESPACES: Dict[Tuple[TokenList, Environment], str] = {
    (TokenList.SEND, Environment.SANDBOX): "tok_snd_s",
    (TokenList.SEND, Environment.PRODUCTION): "tok_snd_p",
    (TokenList.BLOCK, Environment.SANDBOX): "tok_blk_s",
    (TokenList.BLOCK, Environment.PRODUCTION): "tok_blk_p",
}


class RegisterOutcome(str, Enum):
    """Result of a token registration."""

    STORED = "stored"
    IGNORED_BLOCKED = "blocked"
    IGNORED_NO_CHANGE = "no_change"

    @property
    def stored(self) -> bool:
        return self is RegisterOutcome.STORED

    @property
    def reason(self) -> Optional[str]:
        """Why the registration was ignored, or None when stored."""
        return None if self.stored else self.value


@dataclass(frozen=True)
class TokenEntry:
    """One registry entry, tagged with the partition it came from."""

    environment: Environment
    ip: str
    token: str

    def to_dict(self) -> dict:
        return {
            "ip": self.ip,
            "token": self.token,
            "server_type": self.environment.value,
        }


def parse_environment(value: Union[Environment, str]) -> Environment:
    try:
        return Environment(value)
    except ValueError:
        raise ArgumentError(
            f"Unknown environment {value!r}; expected 'sandbox' or 'production'"
        ) from None


def _check_ip(ip: str) -> str:
    if not isinstance(ip, str) or not ip.strip():
        raise ArgumentError("ip is required")
    ip = ip.strip()
    if len(ip) > KEY_MAX_LENGTH:
        raise ArgumentError(f"ip exceeds {KEY_MAX_LENGTH} characters")
    return ip


def _check_token(token: str) -> str:
    if not isinstance(token, str) or not token.strip():
        raise ArgumentError("token is required")
    token = token.strip()
    if len(token) > VALUE_MAX_LENGTH:
        raise ArgumentError(f"token exceeds {VALUE_MAX_LENGTH} characters")
    if not _DEVICE_TOKEN_RE.fullmatch(token):
        raise ArgumentError("token must be a hex string")
    return token


class TokenRegistry:
    """
    Send/block registry of APNS device tokens keyed by client IP.

    No locking of its own: every operation maps onto single-key store
    writes, each atomic at the storage layer. Guard-then-write sequences
    spanning several calls are not atomic.

    Usage:
        registry = TokenRegistry()
        outcome = registry.register("sandbox", "10.0.0.5", "a1b2...")
        if outcome.stored:
            ...
    """

    def __init__(self, store: Optional[KeyValueStore] = None):
        self._store = store or KeyValueStore()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, environment: Union[Environment, str], ip: str, token: str) -> RegisterOutcome:
        """
        Register or update the send-list token for (environment, ip).

        Ignored when the pair is blocked, or when the send list already
        holds the same token.

        Raises:
            ArgumentError: Invalid environment, ip or token
            StorageError: Storage failure
        """
        env = parse_environment(environment)
        ip = _check_ip(ip)
        token = _check_token(token)

        if self._store.get(NAMESPACES[(TokenList.BLOCK, env)], ip) is not None:
            logger.info(
                "Token registration ignored: IP is blocked",
                extra={"environment": env.value, "ip": ip},
            )
            return RegisterOutcome.IGNORED_BLOCKED

        send_ns = NAMESPACES[(TokenList.SEND, env)]
        if self._store.get(send_ns, ip) == token:
            logger.debug(
                "Token registration ignored: no change",
                extra={"environment": env.value, "ip": ip},
            )
            return RegisterOutcome.IGNORED_NO_CHANGE

        self._store.set(send_ns, ip, token)
        logger.info(
            "Token registered",
            extra={"environment": env.value, "ip": ip, "token": mask_token(token)},
        )
        return RegisterOutcome.STORED

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_send(self, environment: Union[Environment, str], ip: str) -> Optional[str]:
        """Send-list token for (environment, ip), or None."""
        return self._get(TokenList.SEND, environment, ip)

    def get_block(self, environment: Union[Environment, str], ip: str) -> Optional[str]:
        """Block-list token for (environment, ip), or None."""
        return self._get(TokenList.BLOCK, environment, ip)

    def list_send(self, environment: Optional[Union[Environment, str]] = None) -> List[TokenEntry]:
        """Send-list entries of one partition, or of both when environment is None."""
        return self._list(TokenList.SEND, environment)

    def list_block(self, environment: Optional[Union[Environment, str]] = None) -> List[TokenEntry]:
        """Block-list entries of one partition, or of both when environment is None."""
        return self._list(TokenList.BLOCK, environment)

    # ------------------------------------------------------------------
    # Deletes (both partitions)
    # ------------------------------------------------------------------

    def delete_send(self, ip: str) -> bool:
        """Remove ip from the send list in both partitions; False if absent from both."""
        return self._delete_everywhere(TokenList.SEND, ip)

    def delete_block(self, ip: str) -> bool:
        """Remove ip from the block list in both partitions; False if absent from both."""
        return self._delete_everywhere(TokenList.BLOCK, ip)

    # ------------------------------------------------------------------
    # Block list writes and moves
    # ------------------------------------------------------------------

    def add_block(self, ip: str, token: str) -> None:
        """
        Block ip in both partitions.

        The block entry is written first; any send-list entry for ip is
        removed afterwards, so the pair never sits in both lists once the
        call returns.
        """
        ip = _check_ip(ip)
        token = _check_token(token)

        for env in Environment:
            self._store.set(NAMESPACES[(TokenList.BLOCK, env)], ip, token)
            self._store.delete(NAMESPACES[(TokenList.SEND, env)], ip)

        logger.info("IP added to block list", extra={"ip": ip, "token": mask_token(token)})

    def move_to_block(self, ip: str) -> bool:
        """Move ip from send to block in every partition that has it; False if none."""
        return self._move(ip, TokenList.SEND, TokenList.BLOCK)

    def move_to_send(self, ip: str) -> bool:
        """Move ip from block to send in every partition that has it; False if none."""
        return self._move(ip, TokenList.BLOCK, TokenList.SEND)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, token_list: TokenList, environment: Union[Environment, str], ip: str) -> Optional[str]:
        env = parse_environment(environment)
        return self._store.get(NAMESPACES[(token_list, env)], _check_ip(ip))

    def _list(self, token_list: TokenList, environment: Optional[Union[Environment, str]]) -> List[TokenEntry]:
        environments = list(Environment) if environment is None else [parse_environment(environment)]

        entries: List[TokenEntry] = []
        for env in environments:
            for ip, token in self._store.items(NAMESPACES[(token_list, env)]):
                entries.append(TokenEntry(environment=env, ip=ip, token=token))
        return entries

    def _delete_everywhere(self, token_list: TokenList, ip: str) -> bool:
        ip = _check_ip(ip)
        found = False
        for env in Environment:
            if self._store.delete(NAMESPACES[(token_list, env)], ip):
                found = True

        logger.info(
            f"IP removed from {token_list.value} list" if found else f"IP not in {token_list.value} list",
            extra={"ip": ip, "found": found},
        )
        return found

    def _move(self, ip: str, source: TokenList, destination: TokenList) -> bool:
        ip = _check_ip(ip)
        moved: List[str] = []

        for env in Environment:
            source_ns = NAMESPACES[(source, env)]
            token = self._store.get(source_ns, ip)
            if token is None:
                continue

            self._store.set(NAMESPACES[(destination, env)], ip, token)
            self._store.delete(source_ns, ip)
            moved.append(env.value)

        if not moved:
            logger.info(
                f"Move to {destination.value} list failed: IP not found",
                extra={"ip": ip},
            )
            return False

        logger.info(
            f"IP moved to {destination.value} list",
            extra={"ip": ip, "environments": moved},
        )
        return True
