"""
orgregistry.forms — Граф формы организации, компилятор payload и отправка.
"""

from orgregistry.forms.drafts import (  # noqa: F401
    AddressDraft,
    CoordinatesDraft,
    FieldPath,
    LocationDraft,
    OrganizationDraft,
    Reference,
    Unset,
    draft_from_organization,
)
from orgregistry.forms.compiler import (  # noqa: F401
    CoordinatesPolicy,
    FieldError,
    FormCompiler,
    OrganizationPayload,
    Resolved,
    compile_organization,
)
from orgregistry.forms.submit import (  # noqa: F401
    OrganizationFormSubmitter,
    ReferenceFormSubmitter,
    SubmitResult,
)
