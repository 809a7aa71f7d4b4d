from .step_10_refresh_index import RefreshPackageIndexStep
from .step_15_base_packages import BasePackagesStep
from .step_20_docker_engine import DockerEngineStep
from .step_25_docker_group import DockerGroupStep
from .step_30_model_runner import ModelRunnerStep
from .step_40_open_webui_service import OpenWebUIServiceStep
from .step_50_write_artifacts import WriteArtifactsStep
from .step_70_launch_webui import LaunchWebUIStep

__all__ = [
    "RefreshPackageIndexStep",
    "BasePackagesStep",
    "DockerEngineStep",
    "DockerGroupStep",
    "ModelRunnerStep",
    "OpenWebUIServiceStep",
    "WriteArtifactsStep",
    "LaunchWebUIStep",
]
