"""Change event sequencing and shadow table admission."""

from .admission import should_apply
from .codec import (
    InvalidShadowRowError,
    MySqlSequenceCodec,
    PostgresSequenceCodec,
    SequenceCodec,
    UnsupportedSourceTypeError,
    codec_for_event,
    get_codec,
)
from .payload import ChangeEventConvertError, ChangeEventPayload, InvalidChangeEventError
from .sequence import (
    ChangeEventSequence,
    ChangeEventSequenceComparisonError,
    MySqlChangeEventSequence,
    PostgresChangeEventSequence,
    compare_sequences,
)
from .sequencer import (
    AdmissionMetrics,
    AdmissionResult,
    ChangeEventSequencer,
    ShadowTableConflictError,
    ShadowTableWriteError,
)
from .shadow_reader import (
    DirectShadowTableReader,
    LockingShadowTableReader,
    ShadowTableReadError,
    ShadowTableReader,
    build_shadow_table_reader,
    read_shadow_sequence,
)

__all__ = [
    "AdmissionMetrics",
    "AdmissionResult",
    "ChangeEventConvertError",
    "ChangeEventPayload",
    "ChangeEventSequence",
    "ChangeEventSequenceComparisonError",
    "ChangeEventSequencer",
    "DirectShadowTableReader",
    "InvalidChangeEventError",
    "InvalidShadowRowError",
    "LockingShadowTableReader",
    "MySqlChangeEventSequence",
    "MySqlSequenceCodec",
    "PostgresChangeEventSequence",
    "PostgresSequenceCodec",
    "SequenceCodec",
    "ShadowTableReadError",
    "ShadowTableReader",
    "ShadowTableConflictError",
    "ShadowTableWriteError",
    "UnsupportedSourceTypeError",
    "build_shadow_table_reader",
    "codec_for_event",
    "compare_sequences",
    "get_codec",
    "read_shadow_sequence",
    "should_apply",
]
