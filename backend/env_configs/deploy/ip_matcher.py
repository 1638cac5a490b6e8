"""Decides whether a remote address may trigger the configuration pass.

An address is authorized when it is listed verbatim in the ``developer_ip``
filter, or when its IPv4 integer form falls inside one of the inclusive
ranges returned by the ``ip_range`` filter (think of the block a deployment
service sends its hooks from). Anything unparsable simply does not match.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from env_configs.core.hooks import DEVELOPER_IP, IP_RANGE, HookRegistry

_log = logging.getLogger(__name__)


def ip_to_long(value: Any) -> Optional[int]:
    """Dotted-quad IPv4 string to its unsigned 32-bit integer, or None."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return int(ipaddress.IPv4Address(value))
    except ValueError:
        return None


@dataclass(frozen=True)
class IPRange:
    low: str
    high: str

    def contains(self, ip: int) -> bool:
        low = ip_to_long(self.low)
        high = ip_to_long(self.high)
        if low is None or high is None:
            return False
        return low <= ip <= high


def coerce_range(item: Any) -> Optional[IPRange]:
    if isinstance(item, IPRange):
        return item
    if isinstance(item, Mapping):
        return IPRange(str(item.get('low') or ''), str(item.get('high') or ''))
    if isinstance(item, Sequence) and not isinstance(item, (str, bytes)) and len(item) == 2:
        return IPRange(str(item[0] or ''), str(item[1] or ''))
    return None


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (str, bytes, Mapping)):
        return [value]
    if isinstance(value, Iterable):
        return list(value)
    return [value]


class IPMatcher:
    def __init__(
        self,
        hooks: HookRegistry,
        developer_ips: Iterable[str] = (),
        ip_ranges: Iterable[Any] = (),
    ):
        self.hooks = hooks
        self._default_ips = [str(ip) for ip in developer_ips]
        self._default_ranges = [r for r in (coerce_range(i) for i in ip_ranges) if r]

    def developer_ips(self) -> List[str]:
        value = self.hooks.apply_filters(DEVELOPER_IP, list(self._default_ips))
        return [ip for ip in _as_list(value) if isinstance(ip, str)]

    def ip_ranges(self) -> List[IPRange]:
        # the placeholder range never matches; it only documents the entry shape
        default = list(self._default_ranges) or [IPRange('', '')]
        value = self.hooks.apply_filters(IP_RANGE, default)
        ranges: List[IPRange] = []
        for item in _as_list(value):
            r = coerce_range(item)
            if r is None:
                _log.debug("ignoring malformed ip range entry %r", item)
                continue
            ranges.append(r)
        return ranges

    def is_in_ip_range(self, remote_addr: Optional[str]) -> bool:
        ip = ip_to_long(remote_addr)
        if ip is None:
            return False
        return any(r.contains(ip) for r in self.ip_ranges())

    def is_authorized(self, remote_addr: Optional[str]) -> bool:
        if not remote_addr:
            return False
        if remote_addr in self.developer_ips():
            return True
        return self.is_in_ip_range(remote_addr)
