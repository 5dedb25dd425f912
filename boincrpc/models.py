from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class Component(str, Enum):
    """Daemon subsystems whose run mode can be changed."""

    CPU = "cpu"
    GPU = "gpu"
    NETWORK = "network"


class RunMode(str, Enum):
    """Run modes accepted by the ``set_*_mode`` operations."""

    ALWAYS = "always"
    AUTO = "auto"
    NEVER = "never"
    RESTORE = "restore"


class CpuSched(IntEnum):
    UNINITIALIZED = 0
    PREEMPTED = 1
    SCHEDULED = 2


class ResultState(IntEnum):
    NEW = 0
    FILES_DOWNLOADING = 1
    FILES_DOWNLOADED = 2
    COMPUTE_ERROR = 3
    FILES_UPLOADING = 4
    FILES_UPLOADED = 5
    ABORTED = 6
    UPLOAD_FAILED = 7


class ProcessState(IntEnum):
    UNINITIALIZED = 0
    EXECUTING = 1
    ABORT_PENDING = 5
    QUIT_PENDING = 8
    SUSPENDED = 9
    COPY_PENDING = 10


class DockerType(str, Enum):
    DOCKER = "docker"
    PODMAN = "podman"


@dataclass
class VersionInfo:
    """Daemon or client version triple, as exchanged by ``exchange_versions``."""

    major: int | None = None
    minor: int | None = None
    release: int | None = None
    name: str | None = None

    def __str__(self) -> str:
        return ".".join(
            "?" if part is None else str(part)
            for part in (self.major, self.minor, self.release)
        )


@dataclass
class HostInfo:
    """Hardware and OS description reported by ``get_host_info``."""

    tz_shift: int | None = None
    domain_name: str | None = None
    serialnum: str | None = None
    ip_addr: str | None = None
    host_cpid: str | None = None

    p_ncpus: int | None = None
    p_vendor: str | None = None
    p_model: str | None = None
    p_features: str | None = None
    p_fpops: float | None = None
    p_iops: float | None = None
    p_membw: float | None = None
    p_calculated: float | None = None
    p_vm_extensions_disabled: bool | None = None

    m_nbytes: float | None = None
    m_cache: float | None = None
    m_swap: float | None = None

    d_total: float | None = None
    d_free: float | None = None

    os_name: str | None = None
    os_version: str | None = None

    docker_version: str | None = None
    docker_type: DockerType | None = None
    docker_compose_version: str | None = None
    docker_compose_type: DockerType | None = None

    product_name: str | None = None
    mac_address: str | None = None
    virtualbox_version: str | None = None
    num_opencl_cpu_platforms: int | None = None


@dataclass
class ProjectInfo:
    """One entry of the daemon's all-projects list."""

    name: str | None = None
    summary: str | None = None
    url: str | None = None
    general_area: str | None = None
    specific_area: str | None = None
    description: str | None = None
    home: str | None = None
    platforms: list[str] | None = None
    image: str | None = None


@dataclass
class AccountManagerInfo:
    url: str | None = None
    name: str | None = None
    have_credentials: bool | None = None
    cookie_required: bool | None = None
    cookie_failure_url: str | None = None


@dataclass
class Message:
    """One event-log message."""

    project_name: str | None = None
    priority: int | None = None
    msg_number: int | None = None
    body: str | None = None
    timestamp: int | None = None


@dataclass
class ActiveTask:
    """Runtime state of a task that currently has a slot."""

    active_task_state: str | None = None
    app_version_num: str | None = None
    slot: int | None = None
    pid: int | None = None
    scheduler_state: str | None = None
    checkpoint_cpu_time: float | None = None
    fraction_done: float | None = None
    current_cpu_time: float | None = None
    elapsed_time: float | None = None
    swap_size: float | None = None
    working_set_size: float | None = None
    working_set_size_smoothed: float | None = None
    page_fault_rate: float | None = None
    bytes_sent: float | None = None
    bytes_received: float | None = None
    progress_rate: float | None = None


@dataclass
class TaskResult:
    """One task ("result") known to the daemon."""

    name: str | None = None
    wu_name: str | None = None
    platform: str | None = None
    version_num: int | None = None
    plan_class: str | None = None
    project_url: str | None = None
    final_cpu_time: float | None = None
    final_elapsed_time: float | None = None
    exit_status: int | None = None
    state: int | None = None
    report_deadline: float | None = None
    received_time: float | None = None
    estimated_cpu_time_remaining: float | None = None
    completed_time: float | None = None
    active_task: ActiveTask | None = None

    @property
    def result_state(self) -> ResultState | None:
        """`state` as a `ResultState`, or None when absent or unknown."""
        if self.state is None:
            return None
        try:
            return ResultState(self.state)
        except ValueError:
            return None


# Version this client announces in exchange_versions.
CLIENT_VERSION = VersionInfo(major=8, minor=1, release=0)
