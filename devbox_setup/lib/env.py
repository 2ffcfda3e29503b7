from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional

_ENV_PREFIX = "DEVBOX_SETUP_"


@dataclass(frozen=True)
class Paths:
    log_dir: str = "/var/log/devbox-setup"
    sudoers_dir: str = "/etc/sudoers.d"
    home_root: str = "/home"
    tools_dirname: str = "ai-tools"
    skel_bashrc: str = "/etc/skel/.bashrc"
    keyrings_dir: str = "/etc/apt/keyrings"
    apt_sources_dir: str = "/etc/apt/sources.list.d"
    compose_standalone: str = "/usr/local/bin/docker-compose-standalone"
    compose_dispatch: str = "/usr/local/bin/docker-compose"

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "Paths":
        """Defaults, overridden by DEVBOX_SETUP_<FIELD> variables when set."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            value = environ.get(_ENV_PREFIX + f.name.upper())
            if value:
                overrides[f.name] = value
        return cls(**overrides)

    def home_for(self, username: str) -> Path:
        if username == "root":
            return Path("/root")
        return Path(self.home_root) / username

    def sudoers_fragment(self, username: str) -> Path:
        return Path(self.sudoers_dir) / f"90-{username}-nopasswd"
