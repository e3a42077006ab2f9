"""Blinded output batches for mint, swap and restore calls."""

from __future__ import annotations

import logging

from .crypto import create_blinded_messages
from .denominations import split_amount
from .types import BlindedMessageBatch, KeySet

logger = logging.getLogger(__name__)


class BlindBatchBuilder:
    """Builds blinded output batches against one keyset."""

    def __init__(self, keyset: KeySet) -> None:
        self.keyset = keyset

    def build(self, amount: int) -> BlindedMessageBatch:
        """Fresh batch whose outputs sum to ``amount``.

        An amount of zero yields an empty batch, which contributes nothing
        when merged.
        """
        amounts = split_amount(amount, self.keyset.denominations)
        batch = create_blinded_messages(amounts)
        logger.debug("Built batch of %d outputs for amount %d", len(batch), amount)
        return batch

    @staticmethod
    def merge(
        *batches: BlindedMessageBatch,
    ) -> tuple[BlindedMessageBatch, list[int]]:
        """Merge batches into one request ordered by amount (NUT-03).

        Returns the merged batch and ``origins`` where ``origins[i]`` is the
        position in ``batches`` of the batch that produced merged output ``i``.
        A single permutation is applied to every field, so each output's
        amount, secret, blinding factor and blinded point stay together.
        """
        items: list[tuple[int, str, str, str, int]] = []
        for origin, batch in enumerate(batches):
            items.extend(
                zip(
                    batch.amounts,
                    batch.secrets,
                    batch.blinding_factors,
                    batch.blinded_points,
                    [origin] * len(batch),
                )
            )

        # stable sort on amount only: ties keep concatenation order
        items.sort(key=lambda item: item[0])

        merged = BlindedMessageBatch(
            amounts=[item[0] for item in items],
            secrets=[item[1] for item in items],
            blinding_factors=[item[2] for item in items],
            blinded_points=[item[3] for item in items],
        )
        return merged, [item[4] for item in items]
