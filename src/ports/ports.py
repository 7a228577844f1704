"""Protocols for the external collaborators of the agent core.

The core depends only on these ports. Concrete implementations (in-memory
adapters, database gateways, recipe APIs) satisfy them structurally, without
inheriting from anything.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from src.models.analysis import CandidateFilters, CandidateSet
from src.models.models import Ingredient
from src.models.responses import UserAgentPreferences, UserInteraction


@runtime_checkable
class CandidateSupplier(Protocol):
    """Supply recipes that can be made from (or nearly from) the given ingredients."""

    async def find_candidates(
        self,
        ingredients: List[Ingredient],
        filters: CandidateFilters,
    ) -> CandidateSet: ...


@runtime_checkable
class HistoryReader(Protocol):
    """Read a user's recent interactions, most recent first."""

    async def recent_interactions(self, user_id: str, limit: int) -> List[UserInteraction]: ...


@runtime_checkable
class InteractionSink(Protocol):
    """Accept a completed interaction for future learning."""

    async def record(self, interaction: UserInteraction) -> None: ...


@runtime_checkable
class PreferenceStore(Protocol):
    """Simple get / merge-update store for non-learned agent preferences."""

    async def get(self, user_id: str) -> Optional[UserAgentPreferences]: ...

    async def update(self, user_id: str, updates: Dict[str, Any]) -> UserAgentPreferences: ...
