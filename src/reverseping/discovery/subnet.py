"""Subnet enumeration and batching."""

import ipaddress
from collections.abc import Iterable, Iterator
from typing import List, TypeVar

from ..exceptions import InvalidSubnetError

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 200


def enumerate_hosts(address: str, netmask: str) -> List[str]:
    """Expand an address/netmask pair into every address of its network.

    The whole range is returned, network and broadcast addresses included.

    Raises:
        InvalidSubnetError: if the pair does not describe a network.
    """
    try:
        network = ipaddress.ip_network(f"{address}/{netmask}", strict=False)
    except ValueError as e:
        raise InvalidSubnetError(address, netmask, str(e)) from e
    return [str(ip) for ip in network]


def batched(items: Iterable[T], size: int = DEFAULT_BATCH_SIZE) -> Iterator[List[T]]:
    """Yield consecutive lists of at most ``size`` items."""
    if size < 1:
        raise ValueError("Batch size must be at least 1.")
    batch: List[T] = []
    for item in items:
        batch.append(item)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch
