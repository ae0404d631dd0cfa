"""Apply plan and report models."""

from dataclasses import dataclass, field
from enum import Enum

from kit_composer.models.kit import Kit


@dataclass(frozen=True)
class ApplyPlan:
    """Deterministic, dependency-ordered sequence of kits to apply."""

    kits: tuple[Kit, ...]
    requested: tuple[str, ...]
    auto_included: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def kit_ids(self) -> list[str]:
        return [kit.id for kit in self.kits]

    def __len__(self) -> int:
        return len(self.kits)


class PlanState(Enum):
    """States of one plan run."""

    PENDING = "Pending"
    RESOLVING = "Resolving"
    BLOCKED = "Blocked"
    READY = "Ready"
    APPLYING = "Applying"
    DONE = "Done"
    ABORTED = "Aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (PlanState.BLOCKED, PlanState.DONE, PlanState.ABORTED)


class KitOutcome(Enum):
    """Final outcome of one kit within a plan run."""

    APPLIED = "Applied"
    SKIPPED = "Skipped"
    CONFLICT_FAILED = "ConflictFailed"
    VERIFY_FAILED = "VerifyFailed"


@dataclass(frozen=True)
class CheckResult:
    """Result of one verification criterion."""

    criterion: str
    passed: bool
    detail: str = ""
    checked: bool = True  # False for manual criteria and skipped probes


@dataclass(frozen=True)
class KitResult:
    """Outcome of one kit plus what it changed and how it verified."""

    kit_id: str
    version: int
    outcome: KitOutcome
    changed_paths: tuple[str, ...] = ()
    checks: tuple[CheckResult, ...] = ()
    message: str = ""

    @property
    def failed_checks(self) -> list[CheckResult]:
        return [check for check in self.checks if check.checked and not check.passed]


@dataclass
class ApplyReport:
    """Aggregated result of a plan run, built up as the run progresses."""

    state: PlanState = PlanState.PENDING
    transitions: list[PlanState] = field(default_factory=lambda: [PlanState.PENDING])
    plan: ApplyPlan | None = None
    results: list[KitResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: Exception | None = None
    dry_run: bool = False

    def transition(self, state: PlanState) -> None:
        if self.state.is_terminal:
            raise ValueError(f"Plan run already finished in state {self.state.value}")
        self.state = state
        self.transitions.append(state)

    @property
    def succeeded(self) -> bool:
        return self.state is PlanState.DONE

    def outcome_of(self, kit_id: str) -> KitOutcome | None:
        for result in self.results:
            if result.kit_id == kit_id:
                return result.outcome
        return None
