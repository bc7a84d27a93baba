# Pydantic schemas
from dataconfirm.schemas.submission import (
    GridRowIn,
    SubmissionPayload,
    SubmissionResult,
    parse_grid_payload,
    parse_legacy_elements,
)
from dataconfirm.schemas.confirmation import (
    ConfirmationCreate,
    ConfirmationResult,
    ConfirmedElementIn,
)
