"""Exception hierarchy for hcloud-config.

Every error the package raises on purpose derives from
:class:`HCloudConfigError` so the CLI can print it as a one-line message
instead of a traceback.

Taxonomy::

    HCloudConfigError
    ├── ConfigValidationError   malformed entity fields (always fatal)
    ├── ConfigurationError      reserved names, missing credentials/files
    ├── InterpolationError      template syntax / evaluation failures
    │   ├── TemplateSyntaxError
    │   ├── ExpressionError
    │   │   └── UndefinedNameError
    │   └── UndefinedValueError
    ├── ResolutionError         dangling references, volumes, ports, state
    │   ├── UnsupportedRegistryError
    │   └── RegistryError
    ├── ConflictError           duplicate host ports / proxy routes
    └── ExternalToolError       non-zero exit of terraform, ssh, docker ...
"""

from __future__ import annotations

from typing import Optional


class HCloudConfigError(Exception):
    """Base class for all hcloud-config errors."""


class ConfigValidationError(HCloudConfigError, ValueError):
    """An entity in ``hcloud.yml`` has a missing or malformed field."""


class ConfigurationError(HCloudConfigError):
    """The run is misconfigured (reserved names, credentials, files)."""


# ---------------------------------------------------------------------------
# Interpolation
# ---------------------------------------------------------------------------


class InterpolationError(HCloudConfigError):
    """Base class for template rendering failures."""


class TemplateSyntaxError(InterpolationError):
    """A template could not be split into static and dynamic parts."""


class ExpressionError(InterpolationError):
    """A ``${...}`` expression uses unsupported syntax or fails to evaluate."""


class UndefinedNameError(ExpressionError):
    """An expression references a name that is not bound in the context."""


class UndefinedValueError(InterpolationError):
    """An expression evaluated to ``None`` while undefined values are fatal."""


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class ResolutionError(HCloudConfigError):
    """A reference, volume, image or port could not be resolved."""


class UnsupportedRegistryError(ResolutionError):
    """Wildcard expansion was requested for a registry other than ghcr.io."""


class RegistryError(ResolutionError):
    """The package registry API answered with an error."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Conflicts and external tools
# ---------------------------------------------------------------------------


class ConflictError(HCloudConfigError):
    """Two resources claim the same host port or proxy route."""


class ExternalToolError(HCloudConfigError):
    """An external command (terraform, ssh, scp, docker) failed."""

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
