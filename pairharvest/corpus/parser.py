# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Metadata parsing and normalization.

`parse` turns one metadata file into a Corpus:

  1. Read the file.
  2. Decode the JSON.
  3. Validate it against the metadata schema.
  4. Deserialize it into the raw Individual | Project union.
  5. Map it onto the canonical model.

Individual entries map 1:1. Project entries get the shared
`project_information` block broadcast into them; only the source paths come
from the entry itself. Normalization never runs on unvalidated input.
"""

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pairharvest.corpus.models import Corpus, Features, Language, ProgramPair, ProgramSource
from pairharvest.corpus.raw import (
    RAW_METADATA_ADAPTER,
    FeatureRelationship,
    IndividualMetadata,
    ProjectMetadata,
)
from pairharvest.corpus.validator import MetadataValidator
from pairharvest.errors import MetadataDecodeError, MetadataReadError, MetadataValidationError

_FEATURES: dict[FeatureRelationship, Features] = {
    FeatureRelationship.RUST_SUBSET_OF_C: Features.SUBSET,
    FeatureRelationship.RUST_EQUIVALENT_TO_C: Features.EQUIVALENT,
    FeatureRelationship.RUST_SUPERSET_OF_C: Features.SUPERSET,
    FeatureRelationship.OVERLAPPING: Features.OVERLAPPING,
}


def map_feature_relationship(relationship: FeatureRelationship) -> Features:
    """Translate a metadata feature_relationship literal into Features."""
    return _FEATURES[relationship]


def _from_individual(metadata: IndividualMetadata) -> Corpus:
    pairs = tuple(
        ProgramPair(
            name=pair.program_name,
            description=pair.program_description,
            translation_tools=tuple(pair.translation_tools),
            feature_relationship=map_feature_relationship(pair.feature_relationship),
            original_program=ProgramSource(
                language=Language.C,
                documentation_url=pair.c_program.documentation_url,
                repository_url=pair.c_program.repository_url,
                source_paths=tuple(pair.c_program.source_paths),
            ),
            ported_program=ProgramSource(
                language=Language.RUST,
                documentation_url=pair.rust_program.documentation_url,
                repository_url=pair.rust_program.repository_url,
                source_paths=tuple(pair.rust_program.source_paths),
            ),
        )
        for pair in metadata.pairs
    )
    return Corpus(pairs=pairs)


def _from_project(metadata: ProjectMetadata) -> Corpus:
    shared = metadata.project_information
    translation_tools = tuple(shared.translation_tools)
    features = map_feature_relationship(shared.feature_relationship)

    pairs = tuple(
        ProgramPair(
            name=pair.program_name,
            description=pair.program_description,
            translation_tools=translation_tools,
            feature_relationship=features,
            original_program=ProgramSource(
                language=Language.C,
                documentation_url=shared.c_program.documentation_url,
                repository_url=shared.c_program.repository_url,
                source_paths=tuple(pair.c_program.source_paths),
            ),
            ported_program=ProgramSource(
                language=Language.RUST,
                documentation_url=shared.rust_program.documentation_url,
                repository_url=shared.rust_program.repository_url,
                source_paths=tuple(pair.rust_program.source_paths),
            ),
        )
        for pair in metadata.pairs
    )
    return Corpus(pairs=pairs)


def normalize(document: Any, validator: MetadataValidator) -> Corpus:
    """
    Validate a decoded metadata document and convert it to a Corpus.

    Raises:
        MetadataValidationError: schema violations, or a document the raw
            models reject after passing the schema.
    """
    validator.validate(document)

    try:
        raw = RAW_METADATA_ADAPTER.validate_python(document)
    except ValidationError as err:
        violations = [
            f"$.{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in err.errors()
        ]
        raise MetadataValidationError(violations) from err

    if isinstance(raw, ProjectMetadata):
        return _from_project(raw)
    return _from_individual(raw)


def parse(path: Path, validator: MetadataValidator) -> Corpus:
    """
    Read one metadata file and return its normalized Corpus.

    Raises:
        MetadataReadError: the file cannot be read.
        MetadataDecodeError: the file is not JSON.
        MetadataValidationError: the document fails validation.
    """
    try:
        raw_text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise MetadataReadError(path, str(err)) from err

    try:
        document = json.loads(raw_text)
    except json.JSONDecodeError as err:
        raise MetadataDecodeError(path, str(err)) from err

    return normalize(document, validator)
