"""Decision providers — who answers the questions a sync pass raises.

The engine never decides a conflict on its own. It asks a provider:

- ``StrictDecisionProvider`` refuses every question (CI / fail-on-conflict)
- ``PresetDecisionProvider`` answers from a fixed policy, canonical wins
- ``InteractiveDecisionProvider`` (in ``skillsync.interactive``) asks a human
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from skillsync.errors import UnresolvedConflictError
from skillsync.models.skill import (
    DependentConflict,
    DependentDecision,
    DependentResolution,
    MetadataConflict,
    MetadataResolution,
    OutOfSyncAction,
    OutOfSyncSkill,
    PairwiseConflict,
    PairwiseResolution,
)

logger = logging.getLogger(__name__)


class DecisionProvider(ABC):
    """Answers conflicts raised during a reconciliation pass."""

    @abstractmethod
    def resolve_metadata_conflict(self, conflict: MetadataConflict) -> MetadataResolution:
        ...

    @abstractmethod
    def resolve_dependent_conflict(self, conflict: DependentConflict) -> DependentDecision:
        ...

    @abstractmethod
    def resolve_out_of_sync(
        self, skill: OutOfSyncSkill, legal_actions: list[OutOfSyncAction]
    ) -> OutOfSyncAction:
        ...

    @abstractmethod
    def resolve_pairwise_conflict(
        self, conflict: PairwiseConflict, legal_actions: list[PairwiseResolution]
    ) -> PairwiseResolution:
        ...

    @abstractmethod
    def confirm_platform_creation(self, platform: str) -> bool:
        """Whether a missing platform folder may be created."""


class StrictDecisionProvider(DecisionProvider):
    """Fails on the first question instead of blocking."""

    def resolve_metadata_conflict(self, conflict: MetadataConflict) -> MetadataResolution:
        raise UnresolvedConflictError(
            f"{conflict.skill_name}: field '{conflict.field}' differs from canonical "
            f"in {conflict.target_path or 'a projection'}"
        )

    def resolve_dependent_conflict(self, conflict: DependentConflict) -> DependentDecision:
        raise UnresolvedConflictError(
            f"{conflict.key}: dependent file differs between "
            f"{', '.join(sorted(conflict.versions))}"
        )

    def resolve_out_of_sync(
        self, skill: OutOfSyncSkill, legal_actions: list[OutOfSyncAction]
    ) -> OutOfSyncAction:
        raise UnresolvedConflictError(skill.summary())

    def resolve_pairwise_conflict(
        self, conflict: PairwiseConflict, legal_actions: list[PairwiseResolution]
    ) -> PairwiseResolution:
        raise UnresolvedConflictError(conflict.summary())

    def confirm_platform_creation(self, platform: str) -> bool:
        return False


@dataclass
class PresetDecisionProvider(DecisionProvider):
    """Answers every question from a fixed, pre-declared policy.

    The defaults keep canonical wherever there is a choice. Every question
    asked is recorded in ``asked`` so callers can report what was decided
    on their behalf.
    """

    metadata: MetadataResolution = MetadataResolution.USE_CANONICAL
    dependent: DependentResolution = DependentResolution.USE_CANONICAL
    out_of_sync: OutOfSyncAction = OutOfSyncAction.KEEP_CANONICAL
    pairwise: PairwiseResolution = PairwiseResolution.USE_CANONICAL
    create_platforms: bool = True
    asked: list[str] = field(default_factory=list)

    def resolve_metadata_conflict(self, conflict: MetadataConflict) -> MetadataResolution:
        self._record(f"metadata {conflict.skill_name}.{conflict.field}", self.metadata.value)
        return self.metadata

    def resolve_dependent_conflict(self, conflict: DependentConflict) -> DependentDecision:
        action = self.dependent
        # Nothing canonical to keep yet, so fall back to the default platform
        if action == DependentResolution.USE_CANONICAL and conflict.canonical_hash is None:
            action = DependentResolution.USE_PLATFORM
        self._record(f"dependent {conflict.key}", action.value)
        return DependentDecision(action=action, platform=conflict.platform)

    def resolve_out_of_sync(
        self, skill: OutOfSyncSkill, legal_actions: list[OutOfSyncAction]
    ) -> OutOfSyncAction:
        action = self.out_of_sync if self.out_of_sync in legal_actions else legal_actions[0]
        self._record(f"drift {skill.summary()}", action.value)
        return action

    def resolve_pairwise_conflict(
        self, conflict: PairwiseConflict, legal_actions: list[PairwiseResolution]
    ) -> PairwiseResolution:
        action = self.pairwise if self.pairwise in legal_actions else legal_actions[0]
        self._record(f"conflict {conflict.summary()}", action.value)
        return action

    def confirm_platform_creation(self, platform: str) -> bool:
        self._record(f"create platform {platform}", "yes" if self.create_platforms else "no")
        return self.create_platforms

    def _record(self, question: str, answer: str) -> None:
        logger.info("Auto-resolved %s -> %s", question, answer)
        self.asked.append(f"{question} -> {answer}")
