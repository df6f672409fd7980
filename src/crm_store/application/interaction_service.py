"""Interaction use cases: CRUD.

Interaction ids come from the same sequence as customer ids. The
customer_id on a payload is stored as given; nothing checks that the
customer exists.
"""

from __future__ import annotations

import time
from typing import Callable

from crm_store.application.id_sequence import IdSequence
from crm_store.application.instrumentation import observed
from crm_store.domain.entities import Interaction, InteractionPayload
from crm_store.domain.errors import InvalidInputError, NotFoundError
from crm_store.domain.services import DurableBTreeMap
from crm_store.infrastructure.logging import get_logger
from crm_store.infrastructure.metrics import MetricsRegistry

Clock = Callable[[], int]

logger = get_logger(__name__)

INVALID_PAYLOAD_MSG = "Invalid interaction payload"


class InteractionService:
    """Create, read, update and delete interactions."""

    def __init__(
        self,
        interactions: DurableBTreeMap[Interaction],
        ids: IdSequence,
        clock: Clock = time.time_ns,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._interactions = interactions
        self._ids = ids
        self._clock = clock
        self._metrics = metrics

    def _update_gauges(self) -> None:
        if self._metrics is not None:
            self._metrics.set_record_count("interaction", len(self._interactions))
            self._metrics.last_id.set(self._ids.current())

    def add_interaction(self, payload: InteractionPayload) -> Interaction:
        """Create an interaction with a freshly minted id.

        Raises:
            InvalidInputError: If interaction_type or content is empty, or
                customer_id is not a u64.
        """
        with observed(self._metrics, "add_interaction", customer_id=payload.customer_id):
            if not payload.is_valid():
                raise InvalidInputError(INVALID_PAYLOAD_MSG)

            interaction = Interaction.new(self._ids.next_id(), payload, self._clock())
            self._interactions.insert(interaction.id, interaction)
            self._update_gauges()

            logger.info(
                "interaction_added",
                interaction_id=interaction.id,
                interaction_type=interaction.interaction_type,
            )
            return interaction

    def get_interaction(self, interaction_id: int) -> Interaction:
        """Return an interaction.

        Raises:
            NotFoundError: If no interaction has this id.
        """
        with observed(self._metrics, "get_interaction", interaction_id=interaction_id):
            interaction = self._interactions.get(interaction_id)
            if interaction is None:
                raise NotFoundError(f"an interaction with id={interaction_id} not found")
            return interaction

    def update_interaction(self, interaction_id: int, payload: InteractionPayload) -> Interaction:
        """Overwrite an interaction's type and content and stamp updated_at.

        updated_at never goes backwards: it is at least created_at and at
        least the previous updated_at, even if the clock does.

        Raises:
            InvalidInputError: If the payload is invalid (checked first).
            NotFoundError: If no interaction has this id.
        """
        with observed(self._metrics, "update_interaction", interaction_id=interaction_id):
            if not payload.is_valid():
                raise InvalidInputError(INVALID_PAYLOAD_MSG)

            interaction = self._interactions.get(interaction_id)
            if interaction is None:
                raise NotFoundError(
                    f"couldn't update an interaction with id={interaction_id}. "
                    "Interaction not found"
                )

            interaction.interaction_type = payload.interaction_type
            interaction.content = payload.content
            interaction.updated_at = max(
                self._clock(), interaction.created_at, interaction.updated_at or 0
            )
            self._interactions.insert(interaction.id, interaction)

            logger.info("interaction_updated", interaction_id=interaction_id)
            return interaction

    def delete_interaction(self, interaction_id: int) -> Interaction:
        """Remove an interaction and return it.

        Raises:
            NotFoundError: If no interaction has this id.
        """
        with observed(self._metrics, "delete_interaction", interaction_id=interaction_id):
            interaction = self._interactions.remove(interaction_id)
            if interaction is None:
                raise NotFoundError(
                    f"couldn't delete an interaction with id={interaction_id}. "
                    "Interaction not found"
                )
            self._update_gauges()

            logger.info("interaction_deleted", interaction_id=interaction_id)
            return interaction
