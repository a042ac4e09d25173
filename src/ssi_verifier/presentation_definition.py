"""
Presentation definition matching.

Selects, for each input descriptor of a presentation definition, the first
credential embedded in a presentation that satisfies every constraint field
of the descriptor, and describes the selection as a presentation submission.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from jsonpath_ng.exceptions import JSONPathError
from jsonpath_ng.ext import parse as parse_jsonpath
from jsonschema import Draft7Validator
from jsonschema.validators import validator_for

from ssi_verifier.errors import CredentialParseError
from ssi_verifier.model import Artifact, Credential, Presentation, parse_credential, parse_presentation

log = logging.getLogger(__name__)

SUBMISSION_FORMAT = "jwt_vc"


@dataclass
class ConstraintField:
    """One constraint: any of ``path`` must resolve to a value accepted by ``filter``."""

    path: list[str]
    filter: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConstraintField:
        path = data.get("path") or []
        if isinstance(path, str):
            path = [path]
        return cls(path=list(path), filter=data.get("filter"))


@dataclass
class InputDescriptor:
    """Named set of constraint fields a credential may satisfy."""

    id: str
    fields: list[ConstraintField] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InputDescriptor:
        constraints = data.get("constraints") or {}
        return cls(
            id=data["id"],
            fields=[ConstraintField.from_dict(f) for f in constraints.get("fields", [])],
        )


@dataclass
class PresentationDefinition:
    id: str
    input_descriptors: list[InputDescriptor] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PresentationDefinition:
        return cls(
            id=data["id"],
            input_descriptors=[InputDescriptor.from_dict(d) for d in data.get("input_descriptors", [])],
        )


@dataclass
class DescriptorMapElement:
    id: str
    format: str
    path: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "format": self.format, "path": self.path}


@dataclass
class PresentationSubmission:
    id: str
    definition_id: str
    descriptor_map: list[DescriptorMapElement] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "definition_id": self.definition_id,
            "descriptor_map": [element.to_dict() for element in self.descriptor_map],
        }


@dataclass
class MatchResult:
    """Credentials selected for a definition, in descriptor order."""

    conforming_credentials: list[Any]
    presentation_submission: PresentationSubmission

    def to_dict(self) -> dict[str, Any]:
        return {
            "conforming_credentials": self.conforming_credentials,
            "presentation_submission": self.presentation_submission.to_dict(),
        }


def _field_matches(constraint: ConstraintField, document: Mapping[str, Any]) -> bool:
    validator = None
    if constraint.filter is not None:
        validator_cls = validator_for(constraint.filter, default=Draft7Validator)
        validator = validator_cls(constraint.filter)

    for path in constraint.path:
        try:
            expression = parse_jsonpath(path)
        except JSONPathError as e:
            log.warning("Skipping invalid JSONPath %r: %s", path, e)
            continue
        for match in expression.find(document):
            if validator is None or validator.is_valid(match.value):
                return True
    return False


def credential_matches_descriptor(
    descriptor: InputDescriptor | Mapping[str, Any],
    credential: Artifact | Credential,
) -> bool:
    """Return True if ``credential`` satisfies every constraint field of ``descriptor``.

    Raises:
        CredentialParseError: If ``credential`` is an artifact that cannot be parsed.
    """
    if isinstance(descriptor, Mapping):
        descriptor = InputDescriptor.from_dict(descriptor)
    if isinstance(credential, (str, bytes, Mapping)):
        credential = parse_credential(credential)
    document = credential.document
    return all(_field_matches(constraint, document) for constraint in descriptor.fields)


def match_presentation_definition(
    presentation: Artifact | Presentation,
    definition: PresentationDefinition | Mapping[str, Any],
) -> MatchResult | None:
    """Match the credentials of a presentation against a presentation definition.

    Each descriptor, in definition order, claims the first embedded
    credential by position that satisfies it and is not already claimed.
    Descriptors nothing satisfies are left out of the submission.

    Args:
        presentation: The presentation artifact or parsed presentation.
        definition: The presentation definition or its JSON form.

    Returns:
        The conforming credentials and the presentation submission, or None
        if no descriptor is satisfied.
    """
    if isinstance(definition, Mapping):
        definition = PresentationDefinition.from_dict(definition)
    if isinstance(presentation, (str, bytes, Mapping)):
        presentation = parse_presentation(presentation)

    candidates: list[tuple[int, Any, Credential]] = []
    for index, embedded in enumerate(presentation.verifiable_credentials):
        try:
            candidates.append((index, embedded, parse_credential(embedded)))
        except CredentialParseError as e:
            log.debug("Ignoring embedded credential %d: %s", index, e)

    claimed: set[int] = set()
    conforming: list[Any] = []
    descriptor_map: list[DescriptorMapElement] = []
    for descriptor in definition.input_descriptors:
        for index, embedded, credential in candidates:
            if index in claimed or not credential_matches_descriptor(descriptor, credential):
                continue
            claimed.add(index)
            conforming.append(embedded)
            descriptor_map.append(
                DescriptorMapElement(
                    id=descriptor.id,
                    format=SUBMISSION_FORMAT,
                    path=f"$.verifiableCredential[{index}]",
                )
            )
            break

    if not descriptor_map:
        return None
    return MatchResult(
        conforming_credentials=conforming,
        presentation_submission=PresentationSubmission(
            id=str(uuid.uuid4()),
            definition_id=definition.id,
            descriptor_map=descriptor_map,
        ),
    )
