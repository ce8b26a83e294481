"""Environment diagnostics: probe rules, remediation and health reports."""

from .catalog import default_rules, select_rules
from .engine import DiagnosticEngine
from .probes import (
    DiskSpaceProbe,
    EnvVarProbe,
    Observation,
    ObservationState,
    PathProbe,
    Probe,
    ProbeContext,
    ServiceProbe,
    ToolVersionProbe,
)
from .rules import HealthReport, ProbeResult, ProbeRule, ProbeStatus, Remediation
from .runner import CommandResult, CommandRunner, SubprocessRunner

__all__ = [
    "CommandResult",
    "CommandRunner",
    "DiagnosticEngine",
    "DiskSpaceProbe",
    "EnvVarProbe",
    "HealthReport",
    "Observation",
    "ObservationState",
    "PathProbe",
    "Probe",
    "ProbeContext",
    "ProbeResult",
    "ProbeRule",
    "ProbeStatus",
    "Remediation",
    "ServiceProbe",
    "SubprocessRunner",
    "ToolVersionProbe",
    "default_rules",
    "select_rules",
]
