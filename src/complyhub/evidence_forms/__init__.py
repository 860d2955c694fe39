"""
Evidence form catalog: types, definitions and submission schemas.
"""

from complyhub.evidence_forms.definitions import (
    EVIDENCE_FORM_DEFINITIONS,
    EvidenceFormDefinition,
    FormField,
    MatrixColumn,
    get_definition,
    list_definitions,
)
from complyhub.evidence_forms.descriptions import CONCISE_FORM_DESCRIPTIONS, concise_description
from complyhub.evidence_forms.form_types import (
    MEETING_SUB_TYPES,
    EvidenceFormType,
    parse_form_type,
    to_db_form_type,
    to_external_form_type,
)
from complyhub.evidence_forms.submissions import (
    SUBMISSION_SCHEMAS,
    EvidenceFormFile,
    validate_submission,
)

__all__ = [
    "CONCISE_FORM_DESCRIPTIONS",
    "EVIDENCE_FORM_DEFINITIONS",
    "MEETING_SUB_TYPES",
    "SUBMISSION_SCHEMAS",
    "EvidenceFormDefinition",
    "EvidenceFormFile",
    "EvidenceFormType",
    "FormField",
    "MatrixColumn",
    "concise_description",
    "get_definition",
    "list_definitions",
    "parse_form_type",
    "to_db_form_type",
    "to_external_form_type",
    "validate_submission",
]
