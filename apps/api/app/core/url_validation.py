"""URL validation helpers for outbound HTTP requests (SSRF defense)."""

from __future__ import annotations

import functools
import ipaddress
import socket

import anyio
import httpx


class PrivateAddressError(httpx.ConnectError):
    """Outbound request target resolved to a non-public address."""


def _is_ip_global(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    # `is_global` rejects loopback, link-local, RFC1918, unique-local, multicast, etc.
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped.is_global
    return ip.is_global


def _blocked_message(ip: str, host: str) -> str:
    return f"DNS lookup {ip}(host:{host}) is not allowed. Because, It is private IP address."


async def _resolve_host(host: str, port: int) -> set[ipaddress.IPv4Address | ipaddress.IPv6Address]:
    try:
        infos = await anyio.to_thread.run_sync(
            functools.partial(socket.getaddrinfo, host, port, type=socket.SOCK_STREAM)
        )
    except OSError as exc:
        raise httpx.ConnectError(f"Webhook host could not be resolved: {host}") from exc

    resolved: set[ipaddress.IPv4Address | ipaddress.IPv6Address] = set()
    for info in infos:
        sockaddr = info[4]
        if not sockaddr:
            continue
        try:
            resolved.add(ipaddress.ip_address(sockaddr[0]))
        except ValueError:
            continue
    return resolved


async def assert_public_host(host: str, port: int, *, request: httpx.Request | None = None) -> None:
    """
    Ensure `host` only resolves to publicly routable addresses.

    IP literals are checked directly; hostnames are resolved so internal names
    and alternate IP spellings cannot slip through. Raises PrivateAddressError.
    """
    candidate = (host or "").strip().lower().rstrip(".").strip("[]")
    if not candidate:
        raise httpx.ConnectError("Webhook URL must include a host", request=request)

    try:
        ip = ipaddress.ip_address(candidate)
    except ValueError:
        ip = None
    if ip is not None:
        if not _is_ip_global(ip):
            raise PrivateAddressError(_blocked_message(str(ip), candidate), request=request)
        return

    resolved_ips = await _resolve_host(candidate, port)
    if not resolved_ips:
        raise httpx.ConnectError(f"Webhook host could not be resolved: {candidate}", request=request)

    for resolved in resolved_ips:
        if not _is_ip_global(resolved):
            raise PrivateAddressError(_blocked_message(str(resolved), candidate), request=request)


def is_private_address_error(exc: BaseException) -> bool:
    """True when an exception (or the response it carries) reports a blocked private IP."""
    if isinstance(exc, PrivateAddressError):
        return True
    if "private IP address" in str(exc):
        return True
    response = getattr(exc, "response", None)
    if response is not None:
        try:
            body = response.json()
        except (ValueError, httpx.ResponseNotRead):
            return False
        message = body.get("message") if isinstance(body, dict) else None
        return isinstance(message, str) and "private IP address" in message
    return False
