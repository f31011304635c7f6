"""Exception hierarchy for the threshold BBS+ protocol.

协议错误 / Every protocol inconsistency is raised to the caller, never repaired locally.
"""

from __future__ import annotations

from typing import Iterable


class ThresholdBBSPlusError(ValueError):
    """Base class for all protocol errors."""


class ProtocolOrderViolation(ThresholdBBSPlusError):
    """A message arrived before the round it depends on was completed for that peer."""

    def __init__(self, participant_id: int, round_name: str, detail: str = "") -> None:
        self.participant_id = participant_id
        self.round_name = round_name
        message = f"Participant {participant_id} sent {round_name} out of order"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DuplicateParticipant(ThresholdBBSPlusError):
    def __init__(self, participant_id: int, round_name: str = "") -> None:
        self.participant_id = participant_id
        self.round_name = round_name
        suffix = f" in {round_name}" if round_name else ""
        super().__init__(f"Participant {participant_id} already contributed{suffix}")


class UnknownParticipant(ThresholdBBSPlusError):
    def __init__(self, participant_id: int, round_name: str = "") -> None:
        self.participant_id = participant_id
        self.round_name = round_name
        suffix = f" in {round_name}" if round_name else ""
        super().__init__(f"Participant {participant_id} is not part of this run{suffix}")


class InvalidParticipantSet(ThresholdBBSPlusError):
    """The configured peer set is empty or contains the participant itself."""


class CommitmentMismatch(ThresholdBBSPlusError):
    """A revealed value does not open the commitment received earlier."""

    def __init__(self, participant_id: int, round_name: str, detail: str = "") -> None:
        self.participant_id = participant_id
        self.round_name = round_name
        message = f"Commitment of participant {participant_id} does not match its reveal in {round_name}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class IncompleteRound(ThresholdBBSPlusError):
    """A round was finished while some expected participants are still outstanding."""

    def __init__(self, round_name: str, missing: Iterable[int] = ()) -> None:
        self.round_name = round_name
        self.missing = tuple(sorted(missing))
        if self.missing:
            message = f"{round_name} is incomplete, waiting for participants {list(self.missing)}"
        else:
            message = f"{round_name} is incomplete"
        super().__init__(message)


class NoMessageToSign(ThresholdBBSPlusError):
    def __init__(self) -> None:
        super().__init__("No message to sign")


class MessageCountIncompatibleWithSigParams(ThresholdBBSPlusError):
    def __init__(self, given: int, supported: int) -> None:
        self.given = given
        self.supported = supported
        super().__init__(
            f"Number of messages {given} is different from the {supported} supported by the signature parameters"
        )


class InvalidMessageIndex(ThresholdBBSPlusError):
    def __init__(self, index: int, supported: int) -> None:
        self.index = index
        self.supported = supported
        super().__init__(f"Message index {index} is out of range for {supported} supported messages")


class BatchIndexOutOfRange(ThresholdBBSPlusError):
    def __init__(self, index: int, batch_size: int) -> None:
        self.index = index
        self.batch_size = batch_size
        super().__init__(f"Index {index} is out of range for a batch of {batch_size} signatures")


class InconsistentNonce(ThresholdBBSPlusError):
    """A signature share disagrees with the jointly agreed ``e`` or ``s``."""

    def __init__(self, participant_id: int, nonce_name: str) -> None:
        self.participant_id = participant_id
        self.nonce_name = nonce_name
        super().__init__(f"Participant {participant_id} sent an incorrect {nonce_name}")


class DegenerateAggregate(ThresholdBBSPlusError):
    def __init__(self) -> None:
        super().__init__("The sum of u over all shares is zero and has no inverse")


class InvalidMultiplicationPayload(ThresholdBBSPlusError):
    def __init__(self, participant_id: int, round_name: str, detail: str) -> None:
        self.participant_id = participant_id
        self.round_name = round_name
        super().__init__(f"Invalid {round_name} payload from participant {participant_id}: {detail}")


class SerializationError(ThresholdBBSPlusError):
    """Bytes do not follow the canonical encoding."""


class ChannelAuthenticationError(ThresholdBBSPlusError):
    """An envelope signature or key binding did not verify."""

    def __init__(self, participant_id: int, detail: str) -> None:
        self.participant_id = participant_id
        super().__init__(f"Message from participant {participant_id} failed authentication: {detail}")
