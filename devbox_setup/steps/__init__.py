from .step_10_base_packages import BasePackagesStep
from .step_20_docker import DockerStep
from .step_30_claude_cli import ClaudeCliStep
from .step_40_dev_tools import DevToolsStep
from .step_50_system_config import SystemConfigStep
from .step_60_ai_tools import AiToolsStep

__all__ = [
    "BasePackagesStep",
    "DockerStep",
    "ClaudeCliStep",
    "DevToolsStep",
    "SystemConfigStep",
    "AiToolsStep",
]
