"""Access logging of handled requests and tracking of connection states."""

from __future__ import annotations

import ipaddress
import json
import logging
import queue
import socket
import threading
from collections.abc import Iterable, Mapping
from enum import Enum
from http import HTTPStatus
from typing import Any, Optional, Union

from lingress.metrics import ConnectionStates

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_KUBE_PROBE_PREFIX = "kube-probe/"
_WARN_STATUSES = frozenset(
    {
        HTTPStatus.BAD_GATEWAY,
        HTTPStatus.SERVICE_UNAVAILABLE,
        HTTPStatus.GATEWAY_TIMEOUT,
    }
)
_POLL_INTERVAL = 0.05
_states_lock = threading.Lock()


class ConnState(Enum):
    """The state of a client connection."""

    NEW = "new"
    ACTIVE = "active"
    IDLE = "idle"
    HIJACKED = "hijacked"
    CLOSED = "closed"


def log_level_by_status(status: int) -> int:
    """The logging level an access log entry with this status is written at."""
    if status < 500:
        return logging.INFO
    if status in _WARN_STATUSES:
        return logging.WARNING
    return logging.ERROR


def log_level_by_context(ctx: Any) -> int:
    """The logging level for a context; a failed request without status becomes a 500."""
    if ctx.error is not None and ctx.client.status <= 0:
        ctx.client.status = 500
    return log_level_by_status(ctx.client.status)


def has_private_network_ip(ips: Iterable[IPAddress]) -> bool:
    """Whether any of the addresses belongs to a private or loopback network."""
    return any(ip.is_private or ip.is_loopback for ip in ips)


def _client_field(data: Mapping[str, Any], name: str) -> Any:
    client = data.get("client")
    if isinstance(client, Mapping):
        return client.get(name)
    return data.get(f"client.{name}")


def _lookup_ips(address: str) -> list[IPAddress]:
    try:
        return [ipaddress.ip_address(address)]
    except ValueError:
        pass
    try:
        infos = socket.getaddrinfo(address, None)
    except (OSError, UnicodeError):
        return []
    result: list[IPAddress] = []
    for info in infos:
        try:
            ip = ipaddress.ip_address(info[4][0])
        except ValueError:
            continue
        if ip not in result:
            result.append(ip)
    return result


def user_agent_and_remotes_of(data: Mapping[str, Any]) -> tuple[str, list[IPAddress]]:
    """The user agent and the resolved remote addresses recorded in an access log entry."""
    if "client" not in data and not any(key.startswith("client.") for key in data):
        return "", []
    user_agent = _client_field(data, "userAgent")
    if not isinstance(user_agent, str):
        user_agent = ""
    address = _client_field(data, "address")
    remotes = _lookup_ips(address) if isinstance(address, str) else []
    return user_agent, remotes


def should_be_logged(data: Mapping[str, Any]) -> bool:
    """False for Kubernetes probes coming from a private network."""
    user_agent, remotes = user_agent_and_remotes_of(data)
    return not (user_agent.startswith(_KUBE_PROBE_PREFIX) and has_private_network_ip(remotes))


def _status_of(data: Mapping[str, Any]) -> int:
    status = _client_field(data, "status")
    if isinstance(status, int) and not isinstance(status, bool):
        return status
    return 0


def track_connection_state(
    states: ConnectionStates, previous: Optional[ConnState], state: ConnState
) -> None:
    """Move one connection from its previous state to its new state in the counters."""
    if previous == state:
        return
    with _states_lock:
        if previous is not None:
            if previous is ConnState.NEW:
                states.new -= 1
            elif previous is ConnState.ACTIVE:
                states.active -= 1
            elif previous is ConnState.IDLE:
                states.idle -= 1
            else:
                return

        if state is ConnState.NEW:
            states.new += 1
            states.current += 1
            states.total += 1
            states.max = max(states.max, states.current)
        elif state is ConnState.ACTIVE:
            states.active += 1
        elif state is ConnState.IDLE:
            states.idle += 1
        else:
            states.current -= 1


class AccessLog:
    """Writes one log record per handled request, directly or through a queue."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        inline: bool = False,
        queue_size: int = 0,
    ) -> None:
        self.logger = logger or logging.getLogger("lingress.accessLog")
        self.inline = inline
        self.queue_size = queue_size
        self._queue: Optional[queue.Queue[Any]] = None
        self._stop = threading.Event()
        self._worker: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the queue worker when a queue size is configured."""
        if self.queue_size <= 0 or self._worker is not None:
            return
        self._stop.clear()
        self._queue = queue.Queue(maxsize=self.queue_size)
        self._worker = threading.Thread(target=self._run, name="access-log", daemon=True)
        self._worker.start()

    def stop(self) -> None:
        """Stop the queue worker; entries still queued are dropped."""
        self._stop.set()
        worker = self._worker
        if worker is not None:
            worker.join()
        self._worker = None
        self._queue = None

    def __enter__(self) -> "AccessLog":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    def _run(self) -> None:
        pending = self._queue
        assert pending is not None
        while not self._stop.is_set():
            try:
                ctx = pending.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            self._process(ctx)

    def submit(self, ctx: Any) -> None:
        """Hand a finished context over for logging; the context is released afterwards."""
        if not self.logger.isEnabledFor(log_level_by_context(ctx)):
            return
        pending = self._queue
        if pending is not None:
            pending.put(ctx)
        else:
            self._process(ctx)

    def _process(self, ctx: Any) -> None:
        try:
            self.emit(ctx.as_map(self.inline))
        finally:
            try:
                ctx.release()
            except Exception:  # noqa: BLE001 - report and carry on
                logging.getLogger("lingress.core").exception("Problem while releasing context.")

    def emit(self, data: Mapping[str, Any]) -> bool:
        """Write the entry unless it is filtered out; returns whether it was written."""
        status = _status_of(data)
        if not should_be_logged(data) and status < 400:
            return False
        level = log_level_by_status(status)
        self.logger.log(
            level,
            json.dumps(data, default=str, sort_keys=True),
            extra={"access": dict(data)},
        )
        return True