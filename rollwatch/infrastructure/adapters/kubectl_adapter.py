"""
Kubectl Adapter

Architectural Intent:
- Infrastructure adapter implementing ClusterStateReader and ClusterCommandPort
- Drives the kubectl CLI through asyncio subprocesses so many polls and
  rollout watches can be in flight at once on a single event loop
- Namespace and context flags are applied uniformly to every invocation
- Translates raw kubectl JSON into domain value objects

Security:
- Arguments are passed as an argv list, never through a shell
"""

import asyncio
import json
import logging
import shlex
from typing import Any, AsyncIterator, List, Optional

from rollwatch.domain.errors import (
    ApplyError,
    ClusterCommandError,
    ClusterError,
    ClusterQueryError,
)
from rollwatch.domain.ports.cluster_port import ClusterCommandPort, ClusterStateReader
from rollwatch.domain.value_objects.cluster_state import (
    DeploymentState,
    PodState,
    ServiceState,
)

logger = logging.getLogger(__name__)


def deployment_from_json(item: dict[str, Any]) -> DeploymentState:
    metadata = item.get("metadata") or {}
    status = item.get("status") or {}
    spec = item.get("spec") or {}
    return DeploymentState(
        name=metadata.get("name", ""),
        observed_generation=status.get("observedGeneration"),
        available_replicas=status.get("availableReplicas") or 0,
        desired_replicas=spec.get("replicas", 1),
    )


def service_from_json(item: dict[str, Any]) -> ServiceState:
    spec = item.get("spec") or {}
    load_balancer = (item.get("status") or {}).get("loadBalancer") or {}
    addresses = []
    for entry in load_balancer.get("ingress") or []:
        address = entry.get("ip") or entry.get("hostname")
        if address:
            addresses.append(address)
    return ServiceState(
        name=(item.get("metadata") or {}).get("name", ""),
        selector=tuple((spec.get("selector") or {}).items()),
        ingress=tuple(addresses),
    )


def pod_from_json(item: dict[str, Any]) -> PodState:
    status = item.get("status") or {}
    return PodState(
        name=(item.get("metadata") or {}).get("name", ""),
        phase=status.get("phase", ""),
        conditions=tuple(
            (c.get("type", ""), c.get("status", ""))
            for c in status.get("conditions") or []
        ),
    )


class KubectlAdapter(ClusterStateReader, ClusterCommandPort):
    def __init__(self, kubectl: str = "kubectl", namespace: str = "", context: str = ""):
        self.kubectl = kubectl
        self.namespace = namespace
        self.context = context

    def command(self, *args: str) -> list[str]:
        cmd = [self.kubectl]
        if self.context:
            cmd.append(f"--context={self.context}")
        if self.namespace:
            cmd.append(f"--namespace={self.namespace}")
        cmd.extend(args)
        return cmd

    async def _spawn(self, cmd: list[str], error_cls: type, stdin: Optional[int] = None):
        logger.debug("Running %s", shlex.join(cmd))
        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                stdin=stdin if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise error_cls(f"'{self.kubectl}' not found on PATH") from e

    async def _run(self, *args: str, error_cls: type = ClusterQueryError) -> str:
        cmd = self.command(*args)
        proc = await self._spawn(cmd, error_cls)
        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
            raise
        if proc.returncode != 0:
            raise error_cls(
                f"kubectl {' '.join(args)} failed: {stderr.decode(errors='replace').strip()}",
                proc.returncode,
            )
        return stdout.decode(errors="replace")

    async def _get_json(self, *args: str) -> dict[str, Any]:
        output = await self._run(*args, "-o", "json")
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise ClusterQueryError(f"kubectl {' '.join(args)} returned invalid JSON: {e}") from e

    async def list_deployments(self) -> List[DeploymentState]:
        data = await self._get_json("get", "deployments")
        return [deployment_from_json(item) for item in data.get("items") or []]

    async def get_deployment(self, name: str) -> DeploymentState:
        return deployment_from_json(await self._get_json("get", "deployment", name))

    async def get_service(self, name: str) -> ServiceState:
        return service_from_json(await self._get_json("get", "service", name))

    async def list_pods(self, selector: str) -> List[PodState]:
        data = await self._get_json("get", "pods", "-l", selector)
        return [pod_from_json(item) for item in data.get("items") or []]

    async def apply(self, manifest: bytes) -> AsyncIterator[str]:
        cmd = self.command("apply", "-o", "name", "-f", "-")
        try:
            proc = await self._spawn(cmd, ClusterCommandError, stdin=asyncio.subprocess.PIPE)
        except ClusterError as e:
            raise ApplyError(127, str(e)) from e

        async def feed() -> None:
            try:
                proc.stdin.write(manifest)
                await proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                logger.debug("kubectl apply closed stdin early")
            finally:
                proc.stdin.close()

        async def forward_stderr() -> str:
            lines = []
            async for raw in proc.stderr:
                line = raw.decode(errors="replace").rstrip("\n")
                logger.warning("[KUBECTL] ERR: %s", line)
                lines.append(line)
            return "\n".join(lines)

        feeder = asyncio.create_task(feed())
        errors = asyncio.create_task(forward_stderr())
        try:
            async for raw in proc.stdout:
                line = raw.decode(errors="replace").rstrip("\n")
                logger.info("[KUBECTL] %s", line)
                yield line
            await feeder
            stderr = await errors
            returncode = await proc.wait()
        except BaseException:
            if proc.returncode is None:
                proc.kill()
            feeder.cancel()
            errors.cancel()
            raise

        if returncode != 0:
            raise ApplyError(returncode, stderr)

    async def rollout_status(self, deployment: str, timeout: float) -> str:
        args = ["rollout", "status", "deployment", deployment]
        if timeout:
            args.append(f"--timeout={int(timeout)}s")
        return await self._run(*args, error_cls=ClusterCommandError)

    async def rollout_undo(self, deployment: str) -> str:
        return await self._run(
            "rollout", "undo", "deployment", deployment, error_cls=ClusterCommandError
        )
