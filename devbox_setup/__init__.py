"""devbox-setup: interactive provisioning of a Linux development machine.

Core design goals:
- Detect the platform once, thread it through every step
- Idempotent components, re-probed live on every run
- One component failing never aborts its siblings
- Centralized logging
"""

__version__ = "2.0.0"

__all__ = ["__version__"]
