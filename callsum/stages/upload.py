"""
Stage 1: Upload

Responsibilities:
    - Reject empty payloads
    - Check that decodable container types actually decode
    - Fingerprint the payload (SHA-256), reporting progress per block

Invariants:
    - Same payload = same SHA-256
    - Does not alter the artifact or its duration
"""

import hashlib

from callsum.audio import probe_duration
from callsum.stages.base import Stage, block_progress


# Content types libsndfile can verify before later stages run
PROBED_TYPES = frozenset({"audio/wav", "audio/x-wav", "audio/flac", "audio/ogg"})

BLOCK_SIZE = 64 * 1024


class UploadStage(Stage):
    """Stage 1: validate and fingerprint the artifact payload."""

    stage_id = "upload"
    label = "Uploading audio file"

    def __init__(self, block_size: int = BLOCK_SIZE):
        self.block_size = block_size

    def execute(self, artifact, prior_outputs):
        if not artifact.data:
            raise self.fail("empty audio payload")

        if artifact.content_type in PROBED_TYPES:
            try:
                probe_duration(artifact.data)
            except RuntimeError as e:
                raise self.fail(f"unreadable audio: {e}") from e

        digest = hashlib.sha256()
        total = len(artifact.data)
        for offset in range(0, total, self.block_size):
            block = artifact.data[offset:offset + self.block_size]
            digest.update(block)
            yield block_progress(offset + len(block), total)

        return {
            "sha256": digest.hexdigest(),
            "size_bytes": total,
            "content_type": artifact.content_type,
        }
