"""
Data sources queried by the snapshot collector.

Each source is described by a small async protocol. The adapters below wrap the
command-line tools and HTTP endpoints found on a typical homelab host; tests and
alternative deployments can pass any object that satisfies the protocol.
"""

import asyncio
import json
import xml.etree.ElementTree as ET
from typing import Protocol

import requests
import structlog

from src.core.models import SecuritySummary, TrafficSummary

from .models import ContainerInfo, HealthResult, MeshPeer, MeshStatus, NetworkDevice
from .process import run_process

logger = structlog.get_logger(__name__)


class ContainerRuntime(Protocol):
    async def is_available(self) -> bool: ...

    async def list_containers(self) -> list[ContainerInfo]: ...


class MeshClient(Protocol):
    async def is_installed(self) -> bool: ...

    async def get_status(self) -> MeshStatus: ...


class DeviceScanner(Protocol):
    async def is_available(self) -> bool: ...

    async def scan(self, subnet: str, quick: bool = True) -> list[NetworkDevice]: ...


class HealthSource(Protocol):
    async def check_all(self) -> list[HealthResult]: ...


class TrafficSource(Protocol):
    async def get_summary(self) -> TrafficSummary: ...


class SecuritySource(Protocol):
    async def get_summary(self) -> SecuritySummary: ...


class DockerCliRuntime:
    """Container inventory through the ``docker`` CLI"""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def is_available(self) -> bool:
        try:
            result = await run_process("docker", "info", "--format", "{{.ID}}", timeout=self.timeout)
        except (OSError, TimeoutError):
            return False
        return result.ok

    async def list_containers(self) -> list[ContainerInfo]:
        result = await run_process(
            "docker", "ps", "-a", "--format", "{{json .}}", timeout=self.timeout
        )
        if not result.ok:
            raise RuntimeError(f"docker ps failed: {result.stderr.strip()}")
        return parse_docker_ps(result.stdout)


def parse_docker_ps(output: str) -> list[ContainerInfo]:
    """Parse ``docker ps --format '{{json .}}'`` output, one JSON object per line"""
    containers = []
    for line in output.splitlines():
        if not line.strip():
            continue
        row = json.loads(line)
        state = row.get("State", "")
        containers.append(
            ContainerInfo(
                name=row.get("Names", ""),
                is_running=state == "running",
                image=row.get("Image", ""),
                state=state,
            )
        )
    return containers


class TailscaleCliClient:
    """VPN mesh status through ``tailscale status --json``"""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def is_installed(self) -> bool:
        try:
            result = await run_process("tailscale", "version", timeout=self.timeout)
        except (OSError, TimeoutError):
            return False
        return result.ok

    async def get_status(self) -> MeshStatus:
        result = await run_process("tailscale", "status", "--json", timeout=self.timeout)
        if not result.stdout.strip():
            raise RuntimeError(f"tailscale status failed: {result.stderr.strip()}")
        return parse_tailscale_status(result.stdout)


def parse_tailscale_status(output: str) -> MeshStatus:
    data = json.loads(output)
    self_node = data.get("Self") or {}
    peers = [
        MeshPeer(
            hostname=peer.get("HostName", ""),
            online=bool(peer.get("Online", False)),
            ips=list(peer.get("TailscaleIPs") or []),
        )
        for peer in (data.get("Peer") or {}).values()
    ]
    return MeshStatus(
        backend_state=data.get("BackendState", "Stopped"),
        self_ips=list(self_node.get("TailscaleIPs") or []),
        peers=peers,
    )


class NmapScanner:
    """LAN device discovery with ``nmap``"""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def is_available(self) -> bool:
        try:
            result = await run_process("nmap", "--version", timeout=self.timeout)
        except (OSError, TimeoutError):
            return False
        return result.ok

    async def scan(self, subnet: str, quick: bool = True) -> list[NetworkDevice]:
        # -sn: ping scan only, -sT -F: TCP connect scan of the 100 common ports
        args = ["-sn"] if quick else ["-sT", "-T4", "-F"]
        result = await run_process("nmap", *args, "-oX", "-", subnet, timeout=self.timeout)
        if not result.ok:
            raise RuntimeError(
                f"nmap failed with exit code {result.returncode}: {result.stderr.strip()}"
            )
        return parse_nmap_xml(result.stdout)


def parse_nmap_xml(xml_output: str) -> list[NetworkDevice]:
    """Hosts reported ``up`` in nmap XML output"""
    root = ET.fromstring(xml_output)
    devices = []

    for host in root.iter("host"):
        status = host.find("status")
        if status is None or status.get("state") != "up":
            continue

        device = NetworkDevice(ip="")
        for address in host.findall("address"):
            addrtype = address.get("addrtype")
            if addrtype == "ipv4":
                device.ip = address.get("addr", "")
            elif addrtype == "mac":
                device.mac = address.get("addr")
                device.vendor = address.get("vendor")

        hostname = host.find("hostnames/hostname")
        if hostname is not None:
            device.hostname = hostname.get("name")

        if device.ip:
            devices.append(device)

    return devices


class HttpHealthSource:
    """Service health from plain HTTP endpoints; any status below 400 is healthy"""

    def __init__(self, endpoints: dict[str, str], timeout: float = 5.0):
        self.endpoints = endpoints
        self.timeout = timeout

    def _check(self, name: str, url: str) -> HealthResult:
        try:
            response = requests.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            return HealthResult(name=name, is_healthy=False, message=str(e))
        return HealthResult(
            name=name,
            is_healthy=response.status_code < 400,
            status_code=response.status_code,
        )

    async def check_all(self) -> list[HealthResult]:
        checks = [
            asyncio.to_thread(self._check, name, url) for name, url in self.endpoints.items()
        ]
        results = await asyncio.gather(*checks)
        unhealthy = [r.name for r in results if not r.is_healthy]
        if unhealthy:
            logger.info("Unhealthy services", services=unhealthy)
        return list(results)
