# -*- coding: utf-8 -*-

import codecs
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

import requests
from bs4 import BeautifulSoup

from .config import (
    BING_ENDPOINT, BING_RESULT_COUNT,
    CONTAINER_NAME_PREFIX, SANDBOX_IMAGE,
    MAX_CODE_OUTPUT_CHARS, MAX_CODE_SECONDS,
    MAX_WEB_BYTES, USER_AGENT, WEB_TIMEOUT,
)

try:
    import docker
except ImportError:
    docker = None

LOGGER = logging.getLogger(__name__)


class CollaboratorError(RuntimeError):
    """An external collaborator (search, fetch, sandbox) failed."""


@dataclass
class Sandbox:
    container_id: str
    name: str
    mem_limit: Optional[str]
    nano_cpus: Optional[int]
    pids_limit: Optional[int]
    network_mode: str


@dataclass
class ExecResult:
    ok: bool
    output: str


class SandboxManager:
    def __init__(self, image: str = SANDBOX_IMAGE):
        if docker is None:
            raise RuntimeError("Missing dependency: pip install docker")
        self.image = image
        try:
            self.client = docker.from_env()
        except docker.errors.DockerException as exc:
            raise CollaboratorError(f"Docker is not reachable: {exc}") from exc

    def ensure_image(self):
        try:
            self.client.images.get(self.image)
        except docker.errors.ImageNotFound:
            LOGGER.info("sandbox_image_pull", extra={"image": self.image})
            self.client.images.pull(self.image)

    def start(
        self,
        network_enabled: bool = False,
        mem_limit: str = "1g",
        nano_cpus: int = 1_000_000_000,
        pids_limit: int = 128,
    ) -> Sandbox:
        self.ensure_image()

        name = f"{CONTAINER_NAME_PREFIX}{int(time.time())}-{os.getpid()}"
        network_mode = "bridge" if network_enabled else "none"
        container = self.client.containers.run(
            self.image,
            command=["sleep", "infinity"],
            name=name,
            detach=True,
            network_mode=network_mode,
            mem_limit=mem_limit,
            nano_cpus=nano_cpus,
            pids_limit=pids_limit,
        )
        return Sandbox(
            container_id=container.id,
            name=name,
            mem_limit=mem_limit,
            nano_cpus=nano_cpus,
            pids_limit=pids_limit,
            network_mode=network_mode,
        )

    def stop(self, sandbox: Sandbox):
        try:
            c = self.client.containers.get(sandbox.container_id)
            c.remove(force=True)
        except docker.errors.DockerException as exc:
            LOGGER.warning("sandbox_stop_failed", extra={"container": sandbox.name, "error": str(exc)})

    def exec(self, sandbox: Sandbox, cmd: list[str], timeout_s: int = MAX_CODE_SECONDS) -> tuple[int, str, str]:
        c = self.client.containers.get(sandbox.container_id)

        # coreutils timeout is present in the python images
        safe_cmd = ["timeout", f"{timeout_s}s"] + list(cmd)
        exec_id = self.client.api.exec_create(c.id, safe_cmd, stdout=True, stderr=True)
        stdout, stderr = self.client.api.exec_start(exec_id, tty=False, demux=True)
        inspect = self.client.api.exec_inspect(exec_id)
        code = inspect.get("ExitCode", 1)

        def _decode(raw) -> str:
            if raw is None:
                return ""
            if isinstance(raw, (bytes, bytearray)):
                return raw.decode("utf-8", errors="replace")
            return str(raw)

        return code, _decode(stdout), _decode(stderr)


class PythonSandbox:
    """Runs generated source in a throwaway container and captures stdout."""

    def __init__(self, manager: SandboxManager, sandbox: Sandbox, timeout_s: int = MAX_CODE_SECONDS):
        self.sm = manager
        self.sandbox = sandbox
        self.timeout_s = timeout_s

    @classmethod
    def start(cls, network_enabled: bool = False, timeout_s: int = MAX_CODE_SECONDS) -> "PythonSandbox":
        sm = SandboxManager()
        try:
            return cls(sm, sm.start(network_enabled=network_enabled), timeout_s=timeout_s)
        except docker.errors.DockerException as exc:
            raise CollaboratorError(f"Python sandbox could not start: {exc}") from exc

    def run(self, code: str) -> ExecResult:
        try:
            exit_code, out, err = self.sm.exec(self.sandbox, ["python3", "-c", code], timeout_s=self.timeout_s)
        except docker.errors.DockerException as exc:
            return ExecResult(False, f"Code execution error message: sandbox unavailable: {exc}")
        if exit_code == 0:
            return ExecResult(True, out[-MAX_CODE_OUTPUT_CHARS:])
        if exit_code == 124:
            return ExecResult(False, f"Code execution error message: timed out after {self.timeout_s}s")
        detail = (err or out).strip() or f"exit code {exit_code}"
        return ExecResult(False, f"Code execution error message: {detail[-MAX_CODE_OUTPUT_CHARS:]}")

    def close(self) -> None:
        self.sm.stop(self.sandbox)


def search_with_bing(query: str, api_key: Optional[str], count: int = BING_RESULT_COUNT) -> str:
    if not api_key:
        raise CollaboratorError("Bing search unavailable: BING_API_KEY is not set")
    headers = {
        "Ocp-Apim-Subscription-Key": api_key,
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
    }
    params = {"q": query, "count": count, "responseFilter": "Webpages", "setLang": "en"}
    try:
        r = requests.get(BING_ENDPOINT, headers=headers, params=params, timeout=WEB_TIMEOUT)
        r.raise_for_status()
        data = r.json()
    except requests.JSONDecodeError as exc:
        raise CollaboratorError(f"Bing search returned invalid JSON: {exc}") from exc
    except requests.RequestException as exc:
        raise CollaboratorError(f"Bing search failed: {exc}") from exc

    pages = ((data or {}).get("webPages") or {}).get("value") or []
    lines = []
    for page in pages:
        if not isinstance(page, dict):
            continue
        url = page.get("url") or ""
        snippet = page.get("snippet") or ""
        lines.append(f"webpage at {url} states: {snippet}")
    return "\n".join(lines)


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text("\n").splitlines())
    return "\n".join(line for line in lines if line)


def _codec_name(declared: Optional[str]) -> str:
    # Servers may declare charsets Python has no codec for.
    try:
        return codecs.lookup(declared).name if declared else "utf-8"
    except LookupError:
        LOGGER.info("unknown_charset", extra={"charset": declared})
        return "utf-8"


def get_webpage_text(url: str) -> str:
    try:
        r = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=WEB_TIMEOUT)
        r.raise_for_status()
    except requests.RequestException as exc:
        raise CollaboratorError(f"Fetching {url} failed: {exc}") from exc
    body = r.content[:MAX_WEB_BYTES].decode(_codec_name(r.encoding), errors="replace")
    content_type = r.headers.get("Content-Type", "")
    if "html" in content_type.lower() or body.lstrip().startswith("<"):
        return html_to_text(body)
    return body


class ToolBelt:
    """The external collaborators the dispatcher can reach."""

    def __init__(self, sandbox=None, bing_api_key: Optional[str] = None):
        self.sandbox = sandbox
        self.bing_api_key = bing_api_key if bing_api_key is not None else os.getenv("BING_API_KEY")

    def search(self, query: str) -> str:
        return search_with_bing(query, self.bing_api_key)

    def fetch(self, url: str) -> str:
        return get_webpage_text(url)

    def run_python(self, code: str) -> ExecResult:
        if self.sandbox is None:
            return ExecResult(False, "Code execution error message: no sandbox configured")
        return self.sandbox.run(code)
