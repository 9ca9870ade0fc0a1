"""
Structured validation failures and the collector they accumulate in.

Validation never stops at the first problem: every mismatch for one
schema/table pair is added to a `FailureCollector` so a caller can present
the complete diagnostic in one pass.
"""
import logging
from dataclasses import dataclass
from enum import Enum

from dbrecord.exceptions import SchemaValidationError

logger = logging.getLogger(__name__)


class CauseAttribute(Enum):
    """Configuration attribute a failure is reported against."""
    INPUT_SCHEMA_FIELD = 'inputSchemaField'
    OUTPUT_SCHEMA_FIELD = 'outputSchemaField'
    CONFIG_PROPERTY = 'configProperty'


class FailureKind(Enum):
    MISSING_FIELD = 'missing_field'
    TYPE_MISMATCH = 'type_mismatch'
    NULLABILITY_MISMATCH = 'nullability_mismatch'


@dataclass(frozen=True)
class ValidationFailure:
    """One problem found while validating a declared schema."""
    message: str
    field: str
    attribute: CauseAttribute = CauseAttribute.INPUT_SCHEMA_FIELD
    kind: FailureKind = FailureKind.TYPE_MISMATCH
    corrective_action: str | None = None

    def to_dict(self) -> dict:
        return {
            'message': self.message,
            'field': self.field,
            'attribute': self.attribute.value,
            'kind': self.kind.value,
            'corrective_action': self.corrective_action,
            }


class FailureCollector:
    """Mutable sink for validation failures owned by the caller.
    """

    def __init__(self) -> None:
        self._failures: list[ValidationFailure] = []

    def add_failure(self, message: str, field: str,
                    attribute: CauseAttribute = CauseAttribute.INPUT_SCHEMA_FIELD,
                    kind: FailureKind = FailureKind.TYPE_MISMATCH,
                    corrective_action: str | None = None) -> ValidationFailure:
        """Record a failure and return it.
        """
        failure = ValidationFailure(message, field, attribute, kind, corrective_action)
        self._failures.append(failure)
        logger.debug(f'Validation failure on {field}: {message}')
        return failure

    @property
    def failures(self) -> list[ValidationFailure]:
        return list(self._failures)

    def __len__(self) -> int:
        return len(self._failures)

    def __bool__(self) -> bool:
        return bool(self._failures)

    def get_or_raise(self) -> None:
        """Raise SchemaValidationError carrying every failure, if any.
        """
        if self._failures:
            raise SchemaValidationError(self._failures)
